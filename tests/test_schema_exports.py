import json
import subprocess
import sys
from pathlib import Path

from gir_schema_api.app import app

EXPORT_SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "export_schemas.py"


def test_openapi_contains_core_paths():
    spec = app.openapi()
    for path in ("/metadata", "/types/{name}", "/classes/{name}/ancestry", "/emit"):
        assert path in spec["paths"]
    assert spec["info"]["title"] == "GIR Schema API"


def test_export_script_runs(tmp_path):
    out_dir = tmp_path / "schemas"
    cmd = [sys.executable, str(EXPORT_SCRIPT), "--out-dir", str(out_dir)]
    subprocess.check_call(cmd)
    openapi_path = out_dir / "openapi.json"
    assert openapi_path.exists()
    data = json.loads(openapi_path.read_text())
    assert data.get("openapi")
