"""Exception handling for AutoStar applications.

- **error_handler**: maps parse errors to 400, request validation errors to
  422 and response validation errors to 500, all rendered as the wire error
  document
"""
