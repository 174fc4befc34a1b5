"""
Nox scripts the environment our tests run in. A few commands to check out:

    nox                        Run all sessions.
    nox -l                     List all sessions.
    nox -s <session>           Run a specific session.
    nox ... -- --wheel         Run tests against the wheel in dist.
    nox -h                     Get help.
"""

import glob
import os
import tempfile

import nox

# much faster than pip
nox.options.default_venv_backend = "uv"

SRC_DIR = "recency_cache"
CLI_DIR = "recency_cache/cli"

# The minimal set of dependencies we need to run tests.
BASE_TEST_DEPS = ("pytest", "responses")


@nox.session()
def test_core(session):
    _install_test_deps(session)
    _run_tests(session, SRC_DIR, ignore_paths=[CLI_DIR])
    session.run("pytest", "tests")


@nox.session()
def test_cli(session):
    _install_test_deps(session)
    _run_tests(session, CLI_DIR)


@nox.session()
def pylint(session):
    session.install(".[all]")
    session.install("pylint")
    result = session.run("git", "ls-files", "**/*.py", silent=True, log=False)
    files = result.strip().splitlines()
    if not files:
        return
    session.run("pylint", "--errors-only", *files)


def _install_test_deps(session):
    # Choose the way we'll install recency_cache ... wheel or source.
    install_wheel = "--wheel" in session.posargs
    pkg = _get_wheel() if install_wheel else "."

    # Install _only_ the dependencies we need for testing.
    session.install(pkg, *BASE_TEST_DEPS)

    session.run("python", "-c", "import recency_cache")
    if install_wheel:
        lines = [
            "import sys, recency_cache as r",
            "print(f'Using recency_cache from: {r.__file__}')",
            "sys.exit(0 if 'site-packages' in r.__file__ else 1)",
        ]
        session.run("python", "-c", ";".join(lines))


def _get_wheel():
    path = "dist/recency_cache-*.whl"
    wheels = glob.glob(path)
    if len(wheels) != 1:
        msg = f"There should be one wheel in {path}. Got {len(wheels)}"
        raise Exception(msg)
    return wheels[0]


def _run_tests(session, test_path, ignore_paths=None, env=None):
    """Run tests against a wheel or the source code. Paths should be relative and start with recency_cache."""
    env = env.copy() if env else {}
    paths_to_ignore = ignore_paths or []

    if "--wheel" not in session.posargs:
        test_args = ["pytest", f"src/{test_path}"]
        for path in paths_to_ignore:
            test_args.append(f"--ignore=src/{path}")
        session.run(*test_args, env=env)
        return

    # Run from a temp directory against the installed package so local sources
    # can't be imported by accident.
    py = os.path.join(session.bin, "python")
    site_packages = session.run(py, "-c", "import site; print(site.getsitepackages()[0])", silent=True).strip()
    abs_test_path = os.path.abspath(os.path.join(site_packages, test_path))
    pytest_path = os.path.join(session.bin, "pytest")

    ignore_args = [f"--ignore={os.path.abspath(os.path.join(site_packages, p))}" for p in paths_to_ignore]

    with tempfile.TemporaryDirectory() as tmp:
        os.chdir(tmp)
        env["RECENCY_CACHE_TESTING_WHEEL"] = "1"
        session.run(pytest_path, abs_test_path, *ignore_args, env=env)
