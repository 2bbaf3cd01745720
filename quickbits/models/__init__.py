# Models module
from quickbits.models.upload import Platform, VideoUpload, UploadError

__all__ = ["Platform", "VideoUpload", "UploadError"]
