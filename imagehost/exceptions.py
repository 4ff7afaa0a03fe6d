class ImageHostError(Exception):
    """Base class. ``message`` is safe to show to the user."""

    message = "Something went wrong. Please try again."

    def __init__(self, message=None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(ImageHostError):
    message = "Please choose a file to upload."


class DuplicateUsernameError(ImageHostError):
    message = "Username already taken."


class DuplicateEmailError(ImageHostError):
    message = "Email is already registered."


class InvalidCredentialsError(ImageHostError):
    message = "Invalid username or password."


class UploadError(ImageHostError):
    message = "Upload failed. Please try again."


class NotFoundError(ImageHostError):
    message = "Not found."


class StorageIOError(ImageHostError):
    pass
