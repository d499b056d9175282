from .video_info import VideoInfoUseCase

__all__ = ["VideoInfoUseCase"]
