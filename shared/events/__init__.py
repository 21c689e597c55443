from .emitter import EventEmitter

__all__ = ['EventEmitter']
