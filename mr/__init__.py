"""Release orchestration for Expo / React Native mobile projects."""

__version__ = "0.1.0"
