import nox

nox.options.default_venv_backend = "uv"
nox.options.sessions = ["tests", "doctests"]

PYTHON_VERSIONS = ["3.11", "3.12", "3.13", "3.14"]


def install(session: nox.Session) -> None:
    session.run_install(
        "uv",
        "sync",
        "--group",
        "dev",
        env={"UV_PROJECT_ENVIRONMENT": session.virtualenv.location},
    )


@nox.session(python=PYTHON_VERSIONS, tags=["tests"])
def tests(session: nox.Session) -> None:
    install(session)

    session.run("coverage", "run", "-m", "pytest", *session.posargs)
    session.run("coverage", "report", "--show-missing")


@nox.session(python=PYTHON_VERSIONS[-1], tags=["tests"])
def doctests(session: nox.Session) -> None:
    install(session)

    session.run(
        "pytest",
        "--doctest-modules",
        "src/kit_auth/utils/_cookie_domain.py",
        *session.posargs,
    )
