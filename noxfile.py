# Copyright (C) 2025 Pavel Kirienko <pavel.kirienko@zubax.com>
# type: ignore

import shlex
import shutil
from pathlib import Path

# noinspection PyPackageRequirements
import nox

ROOT = Path(__file__).parent.resolve()

BYPRODUCTS = [
    "*.egg-info",
    "src/*.egg-info",
    ".coverage*",
    "html*",
    ".*cache",
    "__pycache__",
    ".*compiled",
    "*.log",
    "*.tmp",
    "*.ironfit.tab",
    "*.ironfit.yaml",
]

nox.options.error_on_external_run = True


@nox.session(python=False)
def clean(session: nox.Session) -> None:
    for w in BYPRODUCTS:
        for f in Path.cwd().glob(w):
            try:
                session.log(f"Removing: {f}")
                if f.is_dir():
                    shutil.rmtree(f, ignore_errors=True)
                else:
                    f.unlink(missing_ok=True)
            except Exception as ex:
                session.error(f"Failed to remove {f}: {ex}")


@nox.session(reuse_venv=True)
def mypy(session: nox.Session) -> None:
    session.install("-e", ".[test]")
    session.install("mypy ~= 1.14", "types-PyYAML")
    session.run("mypy", ".")


@nox.session(reuse_venv=True)
def black(session: nox.Session) -> None:
    session.install("black ~= 24.10")
    session.run("black", "--check", ".")


@nox.session(reuse_venv=True)
def test(session: nox.Session) -> None:
    session.install("-e", ".[test]")

    # Run the tool with coverage
    def run(args: str) -> None:
        work_dir = Path(session.create_tmp()) / f"integration.{abs(hash(args)):016x}"
        work_dir.mkdir(parents=True)
        with session.chdir(work_dir):
            Path("args.txt").write_text(args)
            session.run("coverage", "run", f"--rcfile={ROOT}/pyproject.toml", "-m", "ironfit", *shlex.split(args))
            for cf in Path().glob(".coverage*"):
                shutil.move(cf, ROOT)

    run(f"bh='{ROOT}/data/B(H).M270-50A.tab'")
    run(f"bh='{ROOT}/data/B(H).M270-50A.tab' fill=0.95 B=1.5 H=5000")
    run(f"losses='{ROOT}/data/losses.M800-50A.tab'")
    run(f"losses='{ROOT}/data/losses.M800-50A.tab' B=1.5 f=400")
    run(f"material='{ROOT}/data/M270-50A.yaml' B=1.0 f=50")
    run(f"material='{ROOT}/data/M270-50A.yaml' H=1e4")

    # Run pytest with coverage
    session.run("coverage", "run", "-m", "pytest", env={"NUMBA_DISABLE_JIT": "1"})

    # Generate coverage report
    session.run("coverage", "combine")
    session.run("coverage", "report", "--fail-under=70")
    if session.interactive:
        session.run("coverage", "html")
        report_file = Path.cwd().resolve() / "htmlcov" / "index.html"
        session.log(f"OPEN IN WEB BROWSER: file://{report_file}")
