"""
PDF Functions - merge, watermark and convert documents over HTTP.

Run the API server with:
    uvicorn pdf_functions.main:app --host 0.0.0.0 --port 8000
"""
