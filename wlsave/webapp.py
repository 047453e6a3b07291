from __future__ import annotations

import logging
from argparse import ArgumentParser

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse

from wlsave import (MAGIC, DecompressionError, NotGVASError, ShortReadError,
                    decompress_payload, parse_savefile)

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 64 * 1024 * 1024

app = FastAPI(title="GVAS Header Inspector", version="0.1.0")


def _sanitize_filename(name: str) -> str:
    keep = [c for c in name if c.isalnum() or c in (".", "_", "-")]
    sanitized = "".join(keep) or "upload.sav"
    return sanitized[-100:]


@app.post("/api/header")
async def api_header(file: UploadFile = File(...)) -> JSONResponse:
    if not file.filename:
        raise HTTPException(status_code=400, detail="Missing filename")
    if not file.filename.lower().endswith(".sav"):
        raise HTTPException(
            status_code=400, detail="Please upload a .sav file")

    try:
        data = await file.read(MAX_UPLOAD_BYTES + 1)
    finally:
        await file.close()
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="File too large")

    try:
        if not data.startswith(MAGIC):
            data = decompress_payload(data)
        save = parse_savefile(data)
    except (NotGVASError, DecompressionError, ShortReadError) as e:
        err_type = e.__class__.__name__
        err_msg = str(e) or repr(e)
        logger.info("Rejected %s: %s", file.filename, err_msg)
        raise HTTPException(
            status_code=400, detail=f"Parse error ({err_type}): {err_msg}")

    return JSONResponse({
        "filename": _sanitize_filename(file.filename),
        "header": save.header.to_dict(),
        "payload_size": len(save.payload),
    })


def main() -> None:
    parser = ArgumentParser(prog="wlsave_webapp",
                            description="GVAS header inspector")
    parser.add_argument("--host", default="127.0.0.1",
                        help="Host to bind (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000,
                        help="Port to bind (default: 8000)")
    args = parser.parse_args()

    import uvicorn  # imported here so uvicorn stays optional unless webapp is used
    uvicorn.run("wlsave.webapp:app", host=args.host,
                port=args.port, reload=False, log_level="info")


if __name__ == "__main__":
    main()
