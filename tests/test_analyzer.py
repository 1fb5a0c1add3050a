"""Tests for the heuristic analyzer."""

import json

import pytest

from primer_cli.analyzer import analyze_repo, detect_frameworks, infer_areas, list_files
from primer_cli.config import AreaConfig
from primer_cli.errors import NotFoundError
from primer_cli.models import Analysis, Area, glob_match


@pytest.fixture
def sample_python_repo(make_repo):
    """Create a sample Python repo structure."""
    return make_repo({
        "README.md": "# My Project\nA cool project\n",
        "pyproject.toml": (
            '[project]\nname = "myproject"\n'
            'dependencies = [\n  "fastapi>=0.100",\n  "pydantic>=2.0",\n  "sqlalchemy>=2.0",\n]\n'
            '\n[project.scripts]\nmyproject = "myproject.cli:main"\n'
        ),
        "src/myproject/__init__.py": "__version__ = '1.0.0'",
        "src/myproject/main.py": "from fastapi import FastAPI\napp = FastAPI()\n",
        "src/myproject/cli.py": "def main(): pass\n",
        "src/myproject/models.py": "class User: pass\n",
        "tests/conftest.py": "import pytest\n",
        "tests/test_main.py": "def test_root(): pass\n",
        ".github/workflows/ci.yml": "name: CI\non: push\n",
        "Dockerfile": "FROM python:3.12\n",
        "docs/index.md": "# Docs\n",
        "node_modules/left-pad/index.js": "module.exports = 1\n",
    })


@pytest.fixture
def sample_rust_repo(make_repo):
    """Create a sample Rust repo structure."""
    return make_repo({
        "Cargo.toml": (
            '[package]\nname = "rustdb"\nversion = "0.1.0"\nedition = "2021"\n\n'
            '[dependencies]\ntokio = { version = "1", features = ["full"] }\n'
            'tonic = "0.11"\nserde = { version = "1", features = ["derive"] }\n'
        ),
        "src/main.rs": 'fn main() { println!("hello"); }\n',
        "src/lib.rs": "pub mod storage;\n",
        "src/storage.rs": "pub struct Store {}\n",
        "tests/integration_test.rs": "#[test]\nfn test_store() {}\n",
        "proto/api.proto": 'syntax = "proto3";\n',
    })


@pytest.fixture
def sample_node_repo(make_repo):
    """Create a sample Node.js/Next.js repo structure."""
    return make_repo({
        "package.json": json.dumps({
            "name": "webapp",
            "bin": {"webapp": "./bin/cli.js"},
            "dependencies": {"next": "^14", "react": "^18", "tailwindcss": "^3", "drizzle-orm": "^0.30"},
            "devDependencies": {"vitest": "^1", "typescript": "^5", "@playwright/test": "^1"},
        }),
        "app/page.tsx": "export default function Home() {}\n",
        "app/api/users/route.ts": "export async function GET() {}\n",
        "components/Header.tsx": "export default function Header() {}\n",
        "bin/cli.js": "#!/usr/bin/env node\n",
    })


class TestAnalyzeRepo:
    """Test full repo analysis."""

    def test_python_repo(self, sample_python_repo):
        analysis = analyze_repo(sample_python_repo)
        assert analysis.languages == ("Python",)
        assert analysis.frameworks == ("FastAPI", "Pydantic", "SQLAlchemy")
        assert [a.name for a in analysis.areas] == ["docs", "src", "tests"]
        assert analysis.areas[1].apply_to == "src/**"
        assert analysis.areas[1].description == "Primary source code"
        assert "src/myproject/main.py" in analysis.entry_points
        assert "src/myproject/cli.py" in analysis.entry_points

    def test_ignored_dirs_excluded(self, sample_python_repo):
        analysis = analyze_repo(sample_python_repo)
        assert "JavaScript" not in analysis.languages
        assert "node_modules" not in [a.name for a in analysis.areas]

    def test_rust_repo(self, sample_rust_repo):
        analysis = analyze_repo(sample_rust_repo)
        assert analysis.languages == ("Rust",)
        assert analysis.frameworks == ("Serde", "Tokio", "Tonic (gRPC)")
        assert analysis.entry_points == ("src/lib.rs", "src/main.rs")
        assert [a.name for a in analysis.areas] == ["proto", "src", "tests"]

    def test_node_repo(self, sample_node_repo):
        analysis = analyze_repo(sample_node_repo)
        assert "TypeScript" in analysis.languages
        assert "JavaScript" in analysis.languages
        for fw in ("Next.js", "React", "Tailwind CSS", "Drizzle ORM", "Vitest", "Playwright"):
            assert fw in analysis.frameworks
        assert "bin/cli.js" in analysis.entry_points

    def test_empty_repo(self, tmp_path):
        analysis = analyze_repo(tmp_path)
        assert analysis == Analysis()
        assert analysis.areas == ()

    def test_root_files_only_yield_no_areas(self, make_repo):
        repo = make_repo({"main.py": "print('hi')\n", "README.md": "# x\n"})
        analysis = analyze_repo(repo)
        assert analysis.languages == ("Python",)
        assert analysis.areas == ()

    def test_nonexistent_path(self, tmp_path):
        with pytest.raises(NotFoundError, match="Not a directory"):
            analyze_repo(tmp_path / "missing")

    def test_file_path_rejected(self, tmp_path):
        f = tmp_path / "file.txt"
        f.write_text("x")
        with pytest.raises(NotFoundError):
            analyze_repo(f)

    def test_deterministic(self, sample_node_repo):
        assert analyze_repo(sample_node_repo) == analyze_repo(sample_node_repo)

    def test_shebang_script_detected(self, make_repo):
        repo = make_repo({"scripts/deploy": "#!/usr/bin/env bash\necho hi\n"})
        assert analyze_repo(repo).languages == ("Shell",)

    def test_unreadable_file_is_excluded(self, make_repo, monkeypatch):
        repo = make_repo({
            "scripts/deploy": "#!/usr/bin/env bash\n",
            "src/app.py": "x = 1\n",
        })

        def deny(*args, **kwargs):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr("primer_cli.analyzer.open", deny, raising=False)
        analysis = analyze_repo(repo)
        assert analysis.languages == ("Python",)

    def test_config_override_from_file(self, make_repo):
        repo = make_repo({
            "primer.config.json": json.dumps({
                "areas": [{"name": "frontend", "applyTo": ["web/**", "ui/**"], "description": "UI"}]
            }),
            "web/index.ts": "export {}\n",
            "ui/button.tsx": "export {}\n",
            "server/main.go": "package main\n",
        })
        analysis = analyze_repo(repo)
        assert [a.name for a in analysis.areas] == ["frontend", "server"]
        assert analysis.areas[0].apply_to == ("web/**", "ui/**")

    def test_explicit_config_skips_file(self, make_repo):
        repo = make_repo({
            "primer.config.json": json.dumps({"areas": [{"name": "x", "applyTo": "web/**"}]}),
            "web/index.ts": "export {}\n",
        })
        analysis = analyze_repo(repo, config=AreaConfig.empty())
        assert [a.name for a in analysis.areas] == ["web"]

    def test_list_files_sorted(self, sample_rust_repo):
        files = list_files(sample_rust_repo)
        assert files == sorted(files)
        assert "src/main.rs" in files


class TestInferAreas:
    """Area clustering over in-memory file trees."""

    def test_groups_by_top_level_directory(self):
        areas = infer_areas(["web/a.ts", "api/b.py", "api/c.py", "README.md"])
        assert [a.name for a in areas] == ["api", "web"]
        assert areas[0].description == "API layer"
        assert areas[1].apply_to == "web/**"

    def test_unknown_directory_description(self):
        (area,) = infer_areas(["billing/invoice.py"])
        assert area.description == "Files under billing/"

    def test_hidden_and_unrecognized_skipped(self):
        assert infer_areas([".github/workflows/ci.yml", "assets/logo.bin"]) == ()

    def test_override_takes_precedence(self):
        config = AreaConfig((Area("frontend", "web/**", "UI"),))
        areas = infer_areas(["web/index.ts", "web/app/main.tsx", "server/main.go"], config)
        assert [a.name for a in areas] == ["frontend", "server"]

    def test_override_claims_files_across_directories(self):
        config = AreaConfig((Area("infra", ("deploy/**", "**/*.tf")),))
        areas = infer_areas(["deploy/k8s.yaml", "modules/net/main.tf", "modules/net/README.md"], config)
        # modules/ still has an unclaimed file
        assert [a.name for a in areas] == ["infra", "modules"]

    def test_heuristic_name_collision_dropped(self):
        config = AreaConfig((Area("src", "lib/**"),))
        areas = infer_areas(["src/a.py", "lib/b.py"], config)
        assert [a.name for a in areas] == ["src"]
        assert areas[0].apply_to == "lib/**"

    def test_collision_compares_file_names(self):
        config = AreaConfig((Area("Docs", "docs/guide/**"),))
        areas = infer_areas(["docs/guide/a.md", "docs/api.md", "my_app/x.py", "my-app/y.py"], config)
        assert [a.name for a in areas] == ["Docs", "my-app"]
        assert len({a.slug for a in areas}) == len(areas)

    def test_input_order_does_not_matter(self):
        paths = ["b/x.py", "a/y.py", "c/z.go"]
        assert infer_areas(paths) == infer_areas(list(reversed(paths)))


class TestFrameworks:
    def test_requirements_txt(self):
        assert detect_frameworks({"requirements.txt": "Django==5.0\ncelery>=5\n# comment\n"}) == ("Celery", "Django")

    def test_invalid_package_json_ignored(self):
        assert detect_frameworks({"package.json": "{not json"}) == ()

    def test_go_mod(self):
        content = "module x\n\nrequire (\n\tgithub.com/gin-gonic/gin v1.9.1\n\tgorm.io/gorm v1.25.0\n)\n"
        assert detect_frameworks({"go.mod": content}) == ("GORM", "Gin")


class TestModels:
    def test_round_trip(self, sample_node_repo):
        analysis = analyze_repo(sample_node_repo)
        data = json.loads(json.dumps(analysis.to_dict()))
        assert set(data) == {"languages", "frameworks", "areas", "entryPoints"}
        assert Analysis.from_dict(data) == analysis

    def test_area_round_trip_with_list(self):
        area = Area("infra", ("deploy/**", "*.tf"), "Infra")
        assert area.to_dict()["applyTo"] == ["deploy/**", "*.tf"]
        assert Area.from_dict(area.to_dict()) == area

    def test_area_requires_pattern(self):
        with pytest.raises(ValueError):
            Area("empty", ())
        with pytest.raises(ValueError):
            Area("blank", "")

    def test_duplicate_area_names_rejected(self):
        with pytest.raises(ValueError, match="Duplicate"):
            Analysis(areas=(Area("a", "a/**"), Area("a", "b/**")))

    def test_areas_sharing_a_file_name_rejected(self):
        with pytest.raises(ValueError, match="Docs, docs"):
            Analysis(areas=(Area("Docs", "a/**"), Area("docs", "b/**")))

    def test_area_lookup_case_insensitive(self):
        analysis = Analysis(areas=(Area("Frontend", "web/**"),))
        assert analysis.area("frontend").name == "Frontend"
        assert analysis.area("backend") is None

    def test_summary_for_prompt(self, sample_python_repo):
        summary = analyze_repo(sample_python_repo).summary_for_prompt()
        assert "Languages: Python" in summary
        assert "FastAPI" in summary
        assert "- src (src/**)" in summary

    @pytest.mark.parametrize("path,pattern,expected", [
        ("src/a/b.py", "src/**", True),
        ("src/a.py", "src/*", True),
        ("src/a/b.py", "src/*", False),
        ("main.tf", "**/*.tf", True),
        ("a/b/main.tf", "**/*.tf", True),
        ("web/x.tsx", "web/**/*.{ts,tsx}", True),
        ("web/x.js", "web/**/*.{ts,tsx}", False),
        ("other/x.py", "src/**", False),
    ])
    def test_glob_match(self, path, pattern, expected):
        assert glob_match(path, pattern) is expected
