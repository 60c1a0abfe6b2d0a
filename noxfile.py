import nox

PYTHON_VERSIONS = ["3.11", "3.12", "3.13"]


def _install(session: nox.Session) -> None:
    """Install the project with the test group into the nox virtualenv."""
    session.run(
        "poetry",
        "install",
        "--with",
        "test",
        external=True,
    )


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Run full test suite across Python versions."""
    _install(session)
    session.run("pytest")


@nox.session(python=PYTHON_VERSIONS)
def tests_domain(session: nox.Session) -> None:
    """Run domain-layer and shared-kernel tests only."""
    _install(session)
    session.run("pytest", "tests/shared/", "tests/store/domain/")


@nox.session(python=PYTHON_VERSIONS)
def tests_core(session: nox.Session) -> None:
    """Run the storefront core tests against fake and in-process stores."""
    _install(session)
    session.run("pytest", "tests/storefront/")
