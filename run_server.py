import os

import uvicorn

if __name__ == "__main__":
    host = os.environ.get("ORGFLOW_HOST", "0.0.0.0")
    port = int(os.environ.get("ORGFLOW_PORT", "8000"))

    print("Starting OrgFlow Chart API...")
    print(f"Docs available at: http://localhost:{port}/docs")

    uvicorn.run(
        "backend.api.server:app",
        host=host,
        port=port,
        reload=os.environ.get("ORGFLOW_RELOAD", "1") == "1",
    )
