import os
import logging
import shutil
from typing import List, Optional
from urllib.parse import urlparse
from ruamel.yaml import YAML
from colorama import Fore, Style, init as colorama_init

from commands import DeployError, run_command

# Console color setup
colorama_init(autoreset=True)

# Global logging context
_CURRENT_CHART = None
_CURRENT_INDENT = 0

class _ColorFormatter(logging.Formatter):
    def format(self, record):
        # Level-based color
        if record.levelno >= logging.ERROR:
            level_color = Fore.RED + "ERROR" + Style.RESET_ALL
        elif record.levelno >= logging.WARNING:
            level_color = Fore.YELLOW + "WARN" + Style.RESET_ALL
        elif record.levelno >= logging.INFO:
            level_color = Fore.CYAN + "INFO" + Style.RESET_ALL
        else:
            level_color = "DEBUG"

        chart = _CURRENT_CHART or ""
        indent_spaces = "  " * max(0, _CURRENT_INDENT)
        chart_prefix = f"[{chart}] " if chart else ""
        original_msg = super().format(record)
        return f"{level_color}: {indent_spaces}{chart_prefix}{original_msg}"

def configure_colored_logging(level=logging.INFO):
    """
    Configure root logger to use colored, contextual formatting.
    Safe to call multiple times.
    """
    root = logging.getLogger()
    root.setLevel(level)
    fmt = _ColorFormatter("%(message)s")
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(fmt)
        root.addHandler(handler)
    else:
        for h in root.handlers:
            h.setFormatter(fmt)

def set_log_context(chart: Optional[str], indent: int = 0):
    """
    Set current log context (chart name + indentation level).
    """
    global _CURRENT_CHART, _CURRENT_INDENT
    _CURRENT_CHART = chart
    _CURRENT_INDENT = indent

def clear_log_context():
    """
    Clear current log context.
    """
    set_log_context(None, 0)

logger = logging.getLogger(__name__)


def discover_chart_directories(charts_dir: str) -> List[str]:
    """
    List the chart source directories directly under charts_dir.

    Hidden directories are ignored, and directories without a Chart.yaml are skipped with a warning.

    Args:
        charts_dir (str): Folder holding one directory per chart.

    Returns:
        list: Sorted absolute paths of the chart directories.
    """
    root = os.path.abspath(charts_dir)
    if not os.path.isdir(root):
        raise DeployError(f"Charts folder not found: {charts_dir}")
    charts = []
    for entry in sorted(os.listdir(root)):
        path = os.path.join(root, entry)
        if entry.startswith(".") or not os.path.isdir(path):
            continue
        if not os.path.isfile(os.path.join(path, "Chart.yaml")):
            logger.warning(f"Skipping {entry}: no Chart.yaml")
            continue
        charts.append(path)
    return charts


def read_chart_metadata(chart_root: str) -> dict:
    yaml = YAML()
    chart_yaml_path = os.path.join(chart_root, "Chart.yaml")
    with open(chart_yaml_path, "r", encoding="utf-8") as f:
        return yaml.load(f) or {}


def derive_repo_name(url: str) -> str:
    """
    Derive a stable helm repo name from a URL host/path.
    """
    parsed = urlparse(url)
    host = (parsed.netloc or "").replace(".", "-")
    path = (parsed.path or "").strip("/").split("/")
    suffix = path[-1] if path and path[-1] else "charts"
    base = f"{host}-{suffix}".lower()
    safe = "".join(ch if ch.isalnum() or ch in "-_" else "-" for ch in base)
    safe = safe.strip("-")
    return safe or "repo"


class ChartPackager:
    def __init__(self, charts_dir: str, output_dir: str):
        """
        Packages every chart under charts_dir into output_dir and indexes the result.

        Args:
            charts_dir (str): Folder holding one directory per chart.
            output_dir (str): Working copy of the target branch; archives and index.yaml land here.
        """
        self.charts_dir = charts_dir
        self.output_dir = os.path.abspath(output_dir)
        self._known_repos = set()

    def helm(self, args, error_message, cwd=None):
        return run_command(["helm"] + args, error_message, cwd=cwd)

    def declared_dependencies(self, chart_root):
        meta = read_chart_metadata(chart_root)
        deps = meta.get("dependencies") or []
        result = []
        for dep in deps:
            if isinstance(dep, dict):
                result.append({
                    "name": dep.get("name"),
                    "repository": dep.get("repository") or "",
                    "version": dep.get("version"),
                    "alias": dep.get("alias") or "",
                })
        return result

    def ensure_dependency_repos(self, chart_root):
        """
        Ensure that all http(s) Chart.yaml dependency repositories are added to helm,
        and update the repo cache if any were added.
        """
        urls = []
        for dep in self.declared_dependencies(chart_root):
            alias_txt = f", alias={dep['alias']}" if dep.get("alias") else ""
            logger.info(f"depends on {dep.get('name')} (repo={dep.get('repository')}, version={dep.get('version')}{alias_txt})")
            repo = dep["repository"].strip()
            if repo.startswith(("http://", "https://")) and repo not in urls and repo not in self._known_repos:
                urls.append(repo)

        for url in urls:
            name = derive_repo_name(url)
            logger.info(f"Ensuring helm repo '{name}' -> {url}")
            self.helm(["repo", "add", "--force-update", name, url], f"Failed to add helm repo {url}")
            self._known_repos.add(url)

        if urls:
            logger.info("Updating helm repo cache...")
            self.helm(["repo", "update"], "Failed to update helm repo cache")
        return urls

    def update_dependencies(self, chart_root):
        logger.info(f"Resolving helm chart dependencies in {chart_root}")
        self.helm(["dependency", "update"], f"Failed to update dependencies of {os.path.basename(chart_root)}", cwd=chart_root)

    def package(self, chart_root):
        """
        Package one chart into the output directory.

        Returns:
            str: Path of the created archive.
        """
        meta = read_chart_metadata(chart_root)
        name = meta.get("name") or os.path.basename(chart_root)
        version = meta.get("version")
        logger.info(f"Packaging {name} version {version}")
        output = self.helm(["package", chart_root, "--destination", self.output_dir],
                           f"Failed to package chart {name}")
        # Output: "Successfully packaged chart and saved it to: /path/name-version.tgz"
        for line in (output or "").splitlines():
            if "saved it to:" in line:
                return line.split("saved it to:")[-1].strip()
        return os.path.join(self.output_dir, f"{name}-{version}.tgz")

    def package_all(self):
        chart_dirs = discover_chart_directories(self.charts_dir)
        if not chart_dirs:
            raise DeployError(f"No charts found in {self.charts_dir}")
        logger.info(f"Found {len(chart_dirs)} charts in {self.charts_dir}")
        archives = []
        try:
            for chart_root in chart_dirs:
                set_log_context(os.path.basename(chart_root), 1)
                self.ensure_dependency_repos(chart_root)
                self.update_dependencies(chart_root)
                archives.append(self.package(chart_root))
        finally:
            clear_log_context()
        logger.info("Packaged all helm charts.")
        return archives

    def build_index(self, chart_url=None):
        """
        Regenerate index.yaml in the output directory, merging with the existing one.
        """
        logger.info("Building index.yaml")
        args = ["repo", "index", self.output_dir]
        if chart_url:
            args += ["--url", chart_url]
        existing = os.path.join(self.output_dir, "index.yaml")
        if os.path.exists(existing):
            args += ["--merge", existing]
        self.helm(args, "Failed to build index.yaml")
        logger.info("Successfully built index.yaml.")
        return existing


def copy_cname(source: str, output_dir: str) -> bool:
    """
    Copy the custom-domain CNAME file into the output tree when the source has one.
    """
    if not os.path.isfile(source):
        return False
    logger.info("Copying CNAME over.")
    shutil.copyfile(source, os.path.join(output_dir, "CNAME"))
    return True
