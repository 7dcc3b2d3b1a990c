"""
Configuration Package for the Cover Encoder.

This package centralizes the static configuration settings for the application.
Keeping constants apart from the logic makes it easy to adjust parameters such as
the engine location or the virtual file names without touching the core code.

This package includes settings for:
- Common application settings like the logging format and the engine location.
- User-overridable values loaded from `config.user.yaml`.
- Audio and tag conventions: virtual paths, tag field order and picture block limits.
"""
