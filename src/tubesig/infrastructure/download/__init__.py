from .streamer import DEFAULT_CHUNK_SIZE, MediaStreamer, Sink

__all__ = ["DEFAULT_CHUNK_SIZE", "MediaStreamer", "Sink"]
