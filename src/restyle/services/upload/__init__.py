"""Asset upload to the content host."""

from restyle.services.upload.cloudinary_client import CloudinaryUploader, sign_upload_params

__all__ = ["CloudinaryUploader", "sign_upload_params"]
