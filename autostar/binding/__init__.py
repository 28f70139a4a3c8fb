"""Request binding: annotations, coercion, extraction, validation and copying.

- **annotations**: ``Tag``/``Embed`` field metadata and cached record plans
- **coercion**: raw value to static type conversions
- **extractor**: fills a record from a Starlette request
- **validator**: rule-based validation of request and response records
- **copier**: mapping/record copies and JSON-ready primitives
"""
