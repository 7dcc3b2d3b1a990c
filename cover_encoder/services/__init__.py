"""
Services Package for the Cover Encoder Application.

This package contains the "service layer": classes and functions that perform a
high-level task by coordinating the domain models and the engine.

- **Request Builder (`build_conversion_request`):**
  Turns target format, tags and an encoded picture into an engine argument list
  plus the virtual input and output files.

- **Worker Channel (`WorkerChannel`, `ExecutionContext`):**
  Executes one request in a private, single-use context, streams the engine's
  output lines, and tears the context down on every exit path.

- **Conversion Service (`ConversionService`):**
  The end-to-end workflow for files on disk, including the failure policy for
  non-zero exits and atomic output writes.

- **Logging Service (`SuccessLog`, `ErrorLog`):**
  YAML records of successful conversions and text records of failures, separate
  from the real-time console logging.
"""
