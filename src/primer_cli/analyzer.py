"""Heuristic repository analyzer. No model needed.

Walks the file tree, detects languages/frameworks/entry points from
extensions and manifests, and clusters files into areas.
"""

from __future__ import annotations

import json
import logging
import os
import re
from collections import Counter
from pathlib import Path, PurePosixPath
from typing import Callable, Iterable, Mapping

from .config import AreaConfig, load_area_config
from .errors import NotFoundError
from .models import Analysis, Area

log = logging.getLogger(__name__)


# --- File tree patterns ---

IGNORE_DIRS = {
    ".git", "node_modules", "__pycache__", ".venv", "venv", "env",
    ".tox", ".mypy_cache", ".pytest_cache", ".ruff_cache",
    "target", "build", "dist", ".next", ".nuxt", ".output",
    "vendor", "Pods", ".build", ".swiftpm", "DerivedData",
    "coverage", ".coverage", "htmlcov", ".nyc_output",
    ".idea", ".vs", ".gradle", ".settings",
}

IGNORE_EXTENSIONS = {
    ".pyc", ".pyo", ".class", ".o", ".obj", ".a", ".lib",
    ".so", ".dylib", ".dll", ".exe", ".bin",
    ".jpg", ".jpeg", ".png", ".gif", ".ico", ".svg", ".webp",
    ".woff", ".woff2", ".ttf", ".eot",
    ".zip", ".tar", ".gz", ".bz2", ".xz", ".rar",
    ".lock",
}

# Extension -> Language mapping (programming languages only)
EXT_LANG = {
    ".py": "Python", ".pyi": "Python",
    ".js": "JavaScript", ".mjs": "JavaScript", ".cjs": "JavaScript",
    ".jsx": "JavaScript",
    ".ts": "TypeScript", ".tsx": "TypeScript", ".mts": "TypeScript",
    ".rs": "Rust",
    ".go": "Go",
    ".java": "Java", ".kt": "Kotlin", ".kts": "Kotlin",
    ".rb": "Ruby",
    ".php": "PHP",
    ".swift": "Swift",
    ".c": "C", ".h": "C",
    ".cpp": "C++", ".cc": "C++", ".cxx": "C++", ".hpp": "C++",
    ".cs": "C#",
    ".scala": "Scala",
    ".ex": "Elixir", ".exs": "Elixir",
    ".erl": "Erlang",
    ".hs": "Haskell",
    ".lua": "Lua",
    ".r": "R",
    ".dart": "Dart",
    ".vue": "Vue",
    ".svelte": "Svelte",
    ".sql": "SQL",
    ".sh": "Shell", ".bash": "Shell", ".zsh": "Shell",
    ".ps1": "PowerShell",
    ".tf": "HCL",
    ".zig": "Zig",
    ".ml": "OCaml", ".mli": "OCaml",
}

# Recognized for area clustering but not reported as languages
AUXILIARY_EXTENSIONS = {
    ".md", ".mdx", ".rst", ".txt",
    ".yaml", ".yml", ".toml", ".json", ".ini", ".cfg",
    ".html", ".htm", ".css", ".scss", ".sass", ".less",
    ".proto", ".graphql",
}

# Interpreter in a shebang line -> language, for extensionless scripts
SHEBANG_LANG = {
    "python": "Python",
    "node": "JavaScript",
    "bash": "Shell", "sh": "Shell", "zsh": "Shell",
    "ruby": "Ruby",
    "perl": "Perl",
}

ENTRY_POINT_NAMES = {
    "main.py", "app.py", "server.py", "__main__.py", "manage.py", "wsgi.py", "asgi.py",
    "index.ts", "index.js", "server.ts", "server.js", "main.ts", "main.js",
    "main.go", "main.rs", "lib.rs", "main.swift", "app.swift",
    "Program.cs", "Main.java", "Application.java",
}

# Well-known top-level directory roles, used for area descriptions
AREA_ROLES = {
    "frontend": "Frontend application code",
    "web": "Web client code",
    "client": "Client application code",
    "ui": "User interface components",
    "app": "Application code",
    "apps": "Applications in this monorepo",
    "packages": "Shared packages in this monorepo",
    "backend": "Backend services",
    "server": "Server code",
    "api": "API layer",
    "services": "Service implementations",
    "src": "Primary source code",
    "lib": "Library code",
    "pkg": "Reusable Go packages",
    "internal": "Internal packages",
    "cmd": "Command entry points",
    "infra": "Infrastructure as code",
    "infrastructure": "Infrastructure as code",
    "deploy": "Deployment configuration",
    "terraform": "Terraform infrastructure",
    "k8s": "Kubernetes manifests",
    "docs": "Documentation",
    "scripts": "Automation scripts",
    "tools": "Developer tooling",
    "test": "Tests",
    "tests": "Tests",
    "e2e": "End-to-end tests",
    "migrations": "Database migrations",
    "examples": "Example code",
}


def analyze_repo(path: str | Path, config: AreaConfig | None = None) -> Analysis:
    """Run heuristic analysis on a local repository.

    Area overrides are read from primer.config.json when `config` is None.
    """
    root = Path(path)
    if not root.is_dir():
        raise NotFoundError(f"Not a directory: {path}")
    root = root.resolve()

    if config is None:
        config = load_area_config(root)

    paths, shebangs = _scan_file_tree(root)
    manifests = _read_manifests(root, paths)

    return Analysis(
        languages=detect_languages(paths, shebangs),
        frameworks=detect_frameworks(manifests),
        areas=infer_areas(paths, config),
        entry_points=detect_entry_points(paths, manifests),
    )


def list_files(root: str | Path) -> list[str]:
    """Sorted repository-relative paths of all analyzable files."""
    return _scan_file_tree(Path(root).resolve())[0]


def _scan_file_tree(root: Path) -> tuple[list[str], dict[str, str]]:
    """Walk the tree and return relative posix paths plus shebang languages.

    Unreadable subdirectories and files are excluded; an unreadable root
    propagates as OSError.
    """
    paths: list[str] = []
    shebangs: dict[str, str] = {}

    def on_error(err: OSError) -> None:
        if Path(err.filename or "") == root:
            raise err
        log.debug("Skipping unreadable directory %s: %s", err.filename, err.strerror)

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        dirnames[:] = [d for d in dirnames if d not in IGNORE_DIRS]
        for fname in filenames:
            ext = os.path.splitext(fname)[1].lower()
            if ext in IGNORE_EXTENSIONS:
                continue
            fpath = os.path.join(dirpath, fname)
            rel = PurePosixPath(Path(fpath).relative_to(root)).as_posix()
            if not ext:
                lang = _shebang_language(fpath)
                if lang:
                    shebangs[rel] = lang
            paths.append(rel)

    paths.sort()
    return paths, shebangs


def _shebang_language(fpath: str) -> str | None:
    try:
        with open(fpath, "rb") as f:
            first = f.readline(200)
    except OSError as e:
        log.debug("Skipping unreadable file %s: %s", fpath, e)
        return None
    if not first.startswith(b"#!"):
        return None
    line = first.decode("utf-8", errors="replace")
    for interpreter, lang in SHEBANG_LANG.items():
        if re.search(rf"[/ ]{interpreter}[\d.]*\b", line):
            return lang
    return None


def detect_languages(paths: Iterable[str], shebangs: Mapping[str, str] | None = None) -> tuple[str, ...]:
    counts: Counter = Counter()
    for p in paths:
        lang = EXT_LANG.get(PurePosixPath(p).suffix.lower())
        if lang:
            counts[lang] += 1
    for lang in (shebangs or {}).values():
        counts[lang] += 1
    return tuple(sorted(counts))


# --- Manifests & frameworks ---

def _read_manifests(root: Path, paths: list[str]) -> dict[str, str]:
    """Read root-level manifest files that framework detection understands."""
    present = set(paths)
    manifests: dict[str, str] = {}
    for name in FRAMEWORK_DETECTORS:
        if name not in present:
            continue
        try:
            manifests[name] = (root / name).read_text(encoding="utf-8", errors="replace")[:50000]
        except OSError as e:
            log.debug("Skipping unreadable manifest %s: %s", name, e)
    return manifests


def _node_frameworks(content: str) -> set[str]:
    try:
        pkg = json.loads(content)
    except (json.JSONDecodeError, ValueError):
        return set()
    if not isinstance(pkg, dict):
        return set()

    all_deps: dict[str, str] = {}
    for dep_key in ("dependencies", "devDependencies", "peerDependencies"):
        deps = pkg.get(dep_key)
        if isinstance(deps, dict):
            all_deps.update(deps)

    fw_map = {
        "next": "Next.js", "react": "React", "vue": "Vue.js",
        "svelte": "Svelte", "@sveltejs/kit": "SvelteKit",
        "express": "Express", "fastify": "Fastify", "koa": "Koa",
        "nuxt": "Nuxt.js", "@angular/core": "Angular",
        "electron": "Electron", "react-native": "React Native",
        "astro": "Astro", "vite": "Vite",
        "tailwindcss": "Tailwind CSS", "prisma": "Prisma",
        "drizzle-orm": "Drizzle ORM", "typeorm": "TypeORM",
        "jest": "Jest", "vitest": "Vitest", "mocha": "Mocha",
        "playwright": "Playwright", "@playwright/test": "Playwright",
        "cypress": "Cypress",
    }
    return {fw for dep, fw in fw_map.items() if dep in all_deps}


def _python_frameworks(content: str) -> set[str]:
    py_fw = {
        "django": "Django", "flask": "Flask", "fastapi": "FastAPI",
        "starlette": "Starlette", "tornado": "Tornado",
        "celery": "Celery", "sqlalchemy": "SQLAlchemy",
        "pydantic": "Pydantic", "pytest": "pytest",
        "numpy": "NumPy", "pandas": "pandas",
        "scikit-learn": "scikit-learn", "torch": "PyTorch",
        "tensorflow": "TensorFlow", "transformers": "Transformers",
        "click": "Click", "typer": "Typer",
        "httpx": "HTTPX", "aiohttp": "aiohttp",
        "rich": "Rich", "uvicorn": "Uvicorn",
    }
    found = set()
    for line in content.split("\n"):
        line = line.strip().strip('"').strip("'").strip(",").lower()
        match = re.match(r"^([a-z0-9_.-]+)", line)
        if match and match.group(1) in py_fw:
            found.add(py_fw[match.group(1)])
    return found


def _rust_frameworks(content: str) -> set[str]:
    crate_fw = {
        "actix-web": "Actix Web", "axum": "Axum", "rocket": "Rocket",
        "tokio": "Tokio", "async-std": "async-std",
        "serde": "Serde", "diesel": "Diesel", "sqlx": "SQLx",
        "tonic": "Tonic (gRPC)", "warp": "Warp",
        "bevy": "Bevy", "clap": "Clap",
    }
    deps = re.findall(r"^(\w[\w-]*)\s*=", content, re.MULTILINE)
    return {crate_fw[d] for d in deps if d in crate_fw}


def _go_frameworks(content: str) -> set[str]:
    go_fw = {
        "github.com/gin-gonic/gin": "Gin",
        "github.com/labstack/echo": "Echo",
        "github.com/gofiber/fiber": "Fiber",
        "github.com/gorilla/mux": "Gorilla Mux",
        "google.golang.org/grpc": "gRPC",
        "github.com/spf13/cobra": "Cobra",
        "gorm.io/gorm": "GORM",
        "github.com/stretchr/testify": "Testify",
    }
    deps = re.findall(r"^\s*(?:require\s+)?([\w./\-]+)\s+v", content, re.MULTILINE)
    return {fw for dep in deps for prefix, fw in go_fw.items() if dep.startswith(prefix)}


def _ruby_frameworks(content: str) -> set[str]:
    ruby_fw = {"rails": "Ruby on Rails", "sinatra": "Sinatra", "rspec": "RSpec", "sidekiq": "Sidekiq"}
    gems = re.findall(r"gem\s+['\"]([^'\"]+)['\"]", content)
    return {ruby_fw[g] for g in gems if g in ruby_fw}


def _java_frameworks(content: str) -> set[str]:
    java_patterns = {
        "spring-boot": "Spring Boot", "quarkus": "Quarkus", "micronaut": "Micronaut",
        "junit": "JUnit", "mockito": "Mockito",
    }
    lower = content.lower()
    return {fw for pattern, fw in java_patterns.items() if pattern in lower}


def _php_frameworks(content: str) -> set[str]:
    try:
        pkg = json.loads(content)
    except (json.JSONDecodeError, ValueError):
        return set()
    if not isinstance(pkg, dict):
        return set()
    deps = list(pkg.get("require", {})) + list(pkg.get("require-dev", {}))
    php_fw = {
        "laravel/framework": "Laravel", "symfony/framework-bundle": "Symfony",
        "slim/slim": "Slim", "phpunit/phpunit": "PHPUnit",
    }
    return {php_fw[d] for d in deps if d in php_fw}


FRAMEWORK_DETECTORS: dict[str, Callable[[str], set[str]]] = {
    "package.json": _node_frameworks,
    "pyproject.toml": _python_frameworks,
    "setup.py": _python_frameworks,
    "requirements.txt": _python_frameworks,
    "Cargo.toml": _rust_frameworks,
    "go.mod": _go_frameworks,
    "Gemfile": _ruby_frameworks,
    "pom.xml": _java_frameworks,
    "build.gradle": _java_frameworks,
    "build.gradle.kts": _java_frameworks,
    "composer.json": _php_frameworks,
}


def detect_frameworks(manifests: Mapping[str, str]) -> tuple[str, ...]:
    found: set[str] = set()
    for name in sorted(manifests):
        detector = FRAMEWORK_DETECTORS.get(name)
        if detector:
            found |= detector(manifests[name])
    return tuple(sorted(found))


# --- Entry points ---

def detect_entry_points(paths: Iterable[str], manifests: Mapping[str, str] | None = None) -> tuple[str, ...]:
    present = set(paths)
    found = {p for p in present if PurePosixPath(p).name in ENTRY_POINT_NAMES}

    manifests = manifests or {}
    if "package.json" in manifests:
        found |= _package_json_entry_points(manifests["package.json"], present)
    if "pyproject.toml" in manifests:
        found |= _pyproject_entry_points(manifests["pyproject.toml"], present)

    return tuple(sorted(found))


def _package_json_entry_points(content: str, present: set[str]) -> set[str]:
    try:
        pkg = json.loads(content)
    except (json.JSONDecodeError, ValueError):
        return set()
    if not isinstance(pkg, dict):
        return set()

    candidates = []
    if isinstance(pkg.get("main"), str):
        candidates.append(pkg["main"])
    bin_field = pkg.get("bin")
    if isinstance(bin_field, str):
        candidates.append(bin_field)
    elif isinstance(bin_field, dict):
        candidates.extend(v for v in bin_field.values() if isinstance(v, str))

    normalized = {PurePosixPath(c).as_posix().removeprefix("./") for c in candidates}
    return normalized & present


def _pyproject_entry_points(content: str, present: set[str]) -> set[str]:
    """Map [project.scripts] targets (pkg.mod:func) onto files in the tree."""
    section = re.search(r"^\[project\.scripts\]\s*$(.*?)(?=^\[|\Z)", content, re.MULTILINE | re.DOTALL)
    if not section:
        return set()

    found = set()
    for module in re.findall(r"=\s*[\"']([\w.]+):", section.group(1)):
        rel = module.replace(".", "/")
        for candidate in (f"{rel}.py", f"src/{rel}.py", f"{rel}/__main__.py", f"src/{rel}/__main__.py"):
            if candidate in present:
                found.add(candidate)
    return found


# --- Areas ---

def infer_areas(paths: Iterable[str], config: AreaConfig | None = None) -> tuple[Area, ...]:
    """Cluster files into areas.

    Override areas come first in configured order and claim every file
    they match. Remaining files are grouped by top-level directory; files at
    the root and in hidden directories form no area.
    """
    config = config or AreaConfig.empty()
    areas = list(config.areas)
    taken = {a.slug for a in areas}

    buckets: Counter = Counter()
    for p in sorted(paths):
        if any(a.matches(p) for a in config.areas):
            continue
        parts = PurePosixPath(p).parts
        if len(parts) < 2 or parts[0].startswith("."):
            continue
        if not _is_recognized(p):
            continue
        buckets[parts[0]] += 1

    for top in sorted(buckets):
        area = Area(
            name=top,
            apply_to=f"{top}/**",
            description=AREA_ROLES.get(top.lower(), f"Files under {top}/"),
        )
        if area.slug in taken:
            log.debug("Dropping area %s: its name collides with an existing area", top)
            continue
        taken.add(area.slug)
        areas.append(area)
    return tuple(areas)


def _is_recognized(path: str) -> bool:
    ext = PurePosixPath(path).suffix.lower()
    return ext in EXT_LANG or ext in AUXILIARY_EXTENSIONS
