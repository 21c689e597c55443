from .video_source import VideoSource, encode_image_jpeg, parse_source

__all__ = ['VideoSource', 'encode_image_jpeg', 'parse_source']
