import os
from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import urlparse

from commands import DeployError


DEFAULT_DEPLOY_BRANCH = "master"
DEFAULT_SERVER_URL = "https://github.com"
DEFAULT_OUTPUT_DIR = "output"
DEFAULT_README_FILE = "README.md"

_REF_PREFIXES = ("refs/tags/", "refs/heads/")


class ConfigError(DeployError):
    """
    Required configuration is missing or unusable.
    """


def get_input(name: str, default: str = "", environ: Optional[Mapping[str, str]] = None) -> str:
    """
    Read an action input from the environment. Runners export INPUT_* names with either hyphens or underscores.
    """
    env = os.environ if environ is None else environ
    upper = name.upper()
    with_underscores = "INPUT_" + upper.replace("-", "_")
    with_hyphens = "INPUT_" + upper.replace("_", "-")
    return (env.get(with_hyphens) or env.get(with_underscores) or default).strip()


def strip_ref(ref: str) -> str:
    """
    Turn a full ref into the short tag or branch name (refs/tags/v1.2.0 -> v1.2.0).
    """
    for prefix in _REF_PREFIXES:
        if ref.startswith(prefix):
            return ref[len(prefix):]
    return ref


def _is_false(value: str) -> bool:
    return value.strip().lower() in ("false", "no", "0", "off")


@dataclass(frozen=True)
class DeployConfig:
    access_token: str
    repository: str
    source_repository: str
    ref: str
    sha: str = ""
    actor: str = ""
    deploy_branch: str = DEFAULT_DEPLOY_BRANCH
    charts_dir: str = "."
    server_url: str = DEFAULT_SERVER_URL
    output_dir: str = DEFAULT_OUTPUT_DIR
    readme_file: str = DEFAULT_README_FILE
    readme_header: Optional[str] = None
    update_readme: bool = True
    chart_url: Optional[str] = None
    push: bool = True

    def __repr__(self):
        """
        Summary without the access token.
        """
        return (f"DeployConfig(repository={self.repository!r}, deploy_branch={self.deploy_branch!r}, "
                f"ref={self.ref!r}, charts_dir={self.charts_dir!r}, output_dir={self.output_dir!r})")

    @property
    def tag(self) -> str:
        return strip_ref(self.ref)

    @property
    def release_uri(self) -> str:
        return f"{self.server_url.rstrip('/')}/{self.source_repository}/releases/tag/{self.tag}"

    @property
    def host(self) -> str:
        return urlparse(self.server_url).netloc or "github.com"

    @property
    def clone_url(self) -> str:
        return f"https://{self.access_token}@{self.host}/{self.repository}.git"

    @property
    def is_self_deploy(self) -> bool:
        return self.ref == f"refs/heads/{self.deploy_branch}"

    @property
    def readme_path(self) -> str:
        return os.path.join(self.output_dir, self.readme_file)

    @classmethod
    def from_args(cls, args, environ: Optional[Mapping[str, str]] = None) -> "DeployConfig":
        """
        Resolve the run configuration once: command-line flags first, then action inputs,
        then the GITHUB_* context variables, then defaults.

        Raises:
            ConfigError: If the access token, the triggering ref or the target repository is missing.
        """
        env = os.environ if environ is None else environ

        def pick(flag_value, input_name, *fallbacks, default=""):
            if flag_value:
                return flag_value
            value = get_input(input_name, environ=env) if input_name else ""
            if value:
                return value
            for var in fallbacks:
                if env.get(var):
                    return env[var].strip()
            return default

        access_token = pick(getattr(args, "access_token", None), "access-token", "GITHUB_TOKEN")
        if not access_token:
            raise ConfigError(
                "No personal access token found. Please provide one with --access-token "
                "or by setting the `access-token` input."
            )

        source_repository = pick(getattr(args, "source_repo", None), None, "GITHUB_REPOSITORY")
        repository = pick(getattr(args, "repo", None), "repo", default=source_repository)
        if not repository:
            raise ConfigError("No target repository given. Set --repo or run with GITHUB_REPOSITORY set.")

        ref = pick(getattr(args, "ref", None), None, "GITHUB_REF")
        if not ref:
            raise ConfigError("No triggering ref given. Set --ref or run with GITHUB_REF set.")

        readme_header = pick(getattr(args, "readme_header", None), "readme-header") or None
        chart_url = pick(getattr(args, "chart_url", None), "chart-url") or None
        update_readme = not getattr(args, "no_readme", False) and not _is_false(get_input("update-readme", "true", environ=env))

        return cls(
            access_token=access_token,
            repository=repository,
            source_repository=source_repository or repository,
            ref=ref,
            sha=pick(getattr(args, "sha", None), None, "GITHUB_SHA"),
            actor=pick(getattr(args, "actor", None), None, "GITHUB_ACTOR"),
            deploy_branch=pick(getattr(args, "deploy_branch", None), "deploy-branch", default=DEFAULT_DEPLOY_BRANCH),
            charts_dir=pick(getattr(args, "charts_folder", None), "charts-folder", default="."),
            server_url=pick(getattr(args, "server_url", None), None, "GITHUB_SERVER_URL", default=DEFAULT_SERVER_URL),
            output_dir=getattr(args, "output_dir", None) or DEFAULT_OUTPUT_DIR,
            readme_file=pick(getattr(args, "readme_file", None), "readme-file", default=DEFAULT_README_FILE),
            readme_header=readme_header,
            update_readme=update_readme,
            chart_url=chart_url,
            push=not getattr(args, "no_push", False),
        )
