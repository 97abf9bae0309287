"""
Contract PDF Service - password-protected contract documents over HTTP

This package provides a FastAPI-based web service that turns a contract PDF
into a password-protected copy. It enables:

- Validation of base64 (data URI) PDF uploads with a size limit
- Deterministic password derivation from contract identifiers
- AES-256 encryption with fixed or caller-supplied permissions
- Optional watermark and metadata stamping

The service is stateless: nothing is stored between requests, and the only
shared resource is a temp directory whose files live for one call.

Key Components:
    - main: FastAPI application and HTTP endpoint definitions
    - pipeline: Orchestration of watermark, password and encryption steps
    - passwords: Password derivation and the random fallback generator
    - encryption: PdfEncryptor backends and the temp file lifecycle
    - watermark: Watermark and metadata stamping
    - validation: Request decoding and size checks
    - configuration: Settings loading and validation
    - middleware: Request logging, API key check and rate limiting

Usage:
    Run the API server with:
        uvicorn contract_pdf_service.main:app --host 0.0.0.0 --port 3001

    Or use the installed script:
        contract-pdf-service
"""
