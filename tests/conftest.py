"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Insert local src directory at the beginning of sys.path
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of codeweave modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("codeweave"):
        del sys.modules[module_name]

from codeweave.config.models import CodeWeaveConfig  # noqa: E402
from fakes import FakeEmbeddingService  # noqa: E402


@pytest.fixture
def fake_service() -> FakeEmbeddingService:
    return FakeEmbeddingService()


@pytest.fixture
def config(tmp_path: Path) -> CodeWeaveConfig:
    """Defaults with the index kept inside tmp_path and small batches."""
    return CodeWeaveConfig.model_validate(
        {
            "index": {"index_path": str(tmp_path / "index")},
            "embedding": {"batch_size": 4, "timeout_sec": None},
            "indexer": {"max_workers": 2},
        }
    )


@pytest.fixture
def sample_repo(tmp_path: Path) -> Path:
    """Small mixed-language repository."""
    repo = tmp_path / "repo"
    (repo / "src" / "auth").mkdir(parents=True)
    (repo / "src" / "auth" / "login.ts").write_text(
        "import { hash } from './crypto';\n"
        "\n"
        "export class AuthService {\n"
        "  loginUser(name: string, password: string) {\n"
        "    if (!name) {\n"
        "      throw new Error('missing name');\n"
        "    }\n"
        "    return hash(password);\n"
        "  }\n"
        "}\n"
    )
    (repo / "src" / "auth" / "crypto.ts").write_text(
        "export function hash(value: string): string {\n"
        "  return value.split('').reverse().join('');\n"
        "}\n"
    )
    (repo / "src" / "chart.py").write_text(
        "import math\n"
        "\n"
        "\n"
        "def render_chart(points):\n"
        "    total = 0\n"
        "    for p in points:\n"
        "        total += math.sqrt(p)\n"
        "    return total\n"
    )
    return repo
