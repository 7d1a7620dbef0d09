import argparse
import logging
import sys
from typing import List, Optional
from chart import ChartPackager, configure_colored_logging, copy_cname
from commands import DeployError, check_dependencies
from deploy_config import DeployConfig
from git_repo import TargetRepository, commit_message
from release_ledger import ReleaseEntry, update_ledger_file
from colorama import Fore, Style

logger = logging.getLogger(__name__)

REQUIRED_TOOLS = ["git", "helm"]

def deploy(config: DeployConfig, cname_source: str = "./CNAME") -> bool:
    """
    Package the charts, refresh the repository index and release ledger, then commit and push
    the target branch. Steps run in order and the first failure aborts the run.

    Returns False when the triggering ref is the deploy branch itself, True otherwise.
    """
    if config.is_self_deploy:
        logger.info(f"Triggered by branch used to deploy: {config.ref}.")
        logger.info("Nothing to deploy.")
        return False

    check_dependencies(REQUIRED_TOOLS)
    logger.info(f"Deploying {config.ref} to repo: {config.repository} and branch: {config.deploy_branch}")

    repo = TargetRepository(config.clone_url, config.deploy_branch, config.output_dir, config.access_token)
    repo.clone()
    if config.actor:
        repo.configure_identity(config.actor)

    packager = ChartPackager(config.charts_dir, config.output_dir)
    packager.package_all()
    packager.build_index(config.chart_url)

    if copy_cname(cname_source, config.output_dir):
        logger.info("Finished copying CNAME.")

    if config.update_readme:
        entry = ReleaseEntry(tag=config.tag, uri=config.release_uri)
        update_ledger_file(config.readme_path, entry, config.readme_header)

    if not repo.has_changes():
        logger.info("Output tree unchanged; nothing to commit.")
        return True
    repo.commit_all(commit_message(config.ref, config.sha))
    if config.push:
        repo.push()
        logger.info("Finished uploading release.")
    else:
        logger.info(f"Skipping push; commit left in {config.output_dir}")

    logger.info(f"{Fore.GREEN}Enjoy!{Style.RESET_ALL} ✨")
    return True

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Package Helm charts and publish them with a repository index to a branch of a Git repository.')
    parser.add_argument('--access-token', required=False, help='Token with push access to the target repository (or set the access-token input / GITHUB_TOKEN)')
    parser.add_argument('--deploy-branch', required=False, help='Branch that serves the chart repository (default: master)')
    parser.add_argument('--repo', required=False, help='Target repository as owner/name (default: the source repository)')
    parser.add_argument('--source-repo', required=False, help='Repository the release belongs to (default: GITHUB_REPOSITORY)')
    parser.add_argument('--charts-folder', required=False, help='Folder containing one directory per chart (default: .)')
    parser.add_argument('--output-dir', required=False, help='Where the target branch is cloned (default: output)')
    parser.add_argument('--readme-file', required=False, help='Release ledger path inside the target branch (default: README.md)')
    parser.add_argument('--readme-header', required=False, help='First line written to a newly created release ledger')
    parser.add_argument('--no-readme', action='store_true', help='Do not update the release ledger')
    parser.add_argument('--chart-url', required=False, help='Base URL for chart archives in index.yaml')
    parser.add_argument('--no-push', action='store_true', help='Commit locally but do not push the target branch')
    # Triggering event (fall back to GITHUB_REF / GITHUB_SHA / GITHUB_ACTOR / GITHUB_SERVER_URL)
    parser.add_argument('--ref', required=False, help='Ref being deployed, e.g. refs/tags/v1.0.0')
    parser.add_argument('--sha', required=False, help='Commit being deployed')
    parser.add_argument('--actor', required=False, help='User recorded as the committer')
    parser.add_argument('--server-url', required=False, help='Git host base URL (default: https://github.com)')
    parser.add_argument('--verbose', action='store_true', help='Log every executed command')
    return parser

def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_colored_logging(logging.DEBUG if args.verbose else logging.INFO)
    try:
        config = DeployConfig.from_args(args)
        deploy(config)
    except DeployError as e:
        logger.error(str(e))
        return 1
    except Exception as e:
        logger.error(f"Deployment failed: {e}")
        return 1
    return 0

if __name__ == "__main__":
    sys.exit(main())
