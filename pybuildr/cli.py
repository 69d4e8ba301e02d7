"""CLI interface for pybuildr."""

import logging
import mimetypes
from pathlib import Path
from typing import Any, Optional

import click

from .api import GitHubClient
from .config import config
from .content import ContentPublisher, Post
from .exceptions import BuildrAPIError, BuildrError
from .images import is_image_path
from .models import FileNode, OperationResult, SyncTarget, Workspace
from .output import OutputFormatter
from .sync.engine import PublishResult
from .sync.state import WorkspaceStore
from .sync.tree import build_file_tree, iter_nodes
from .utils import decode_data_url, is_data_url, to_data_url
from .workspace import WorkspaceService

logger = logging.getLogger(__name__)

SKIPPED_DIR_NAMES = {".git"}


def scan_directory(
    path: Path, base_path: Path, out: OutputFormatter
) -> list[tuple[Path, str, str]]:
    """Recursively scan a directory in name order.

    Args:
        path: Directory to scan
        base_path: Base path for calculating relative paths
        out: Output formatter for warnings

    Returns:
        List of (file_path, relative_path, kind) tuples, kind being "blob"
        for files and "tree" for directories (paths use forward slashes)
    """
    entries = []

    try:
        for item in sorted(path.iterdir()):
            relative_path = item.relative_to(base_path).as_posix()
            if item.is_dir():
                if item.name in SKIPPED_DIR_NAMES:
                    continue
                entries.append((item, relative_path, "tree"))
                entries.extend(scan_directory(item, base_path, out))
            elif item.is_file():
                entries.append((item, relative_path, "blob"))
    except PermissionError as e:
        out.warning(f"Permission denied: {e}")

    return entries


def read_local_workspace(
    directory: Path, out: OutputFormatter
) -> tuple[list[FileNode], dict[str, str]]:
    """Build a workspace tree and contents map from a local directory.

    Image files are left out. Files that are not valid UTF-8 are stored as
    data URLs.
    """
    entries = [
        entry
        for entry in scan_directory(directory, directory, out)
        if entry[2] == "tree" or not is_image_path(entry[1])
    ]
    tree = build_file_tree([(rel, kind) for _, rel, kind in entries])

    contents: dict[str, str] = {}
    for file_path, rel, kind in entries:
        if kind != "blob":
            continue
        data = file_path.read_bytes()
        try:
            contents[rel] = data.decode("utf-8")
        except UnicodeDecodeError:
            contents[rel] = to_data_url(data)
    return tree, contents


def write_local_workspace(workspace: Workspace, directory: Path) -> tuple[int, int]:
    """Write a workspace's tree and contents into a local directory.

    Returns:
        Tuple of (files written, files without content)
    """
    written = missing = 0
    for node in iter_nodes(workspace.file_structure):
        if ".." in node.path.split("/"):
            logger.warning(f"Skipping unsafe path {node.path}")
            continue
        target = directory / node.path
        if node.is_folder:
            target.mkdir(parents=True, exist_ok=True)
            continue
        content = workspace.file_contents.get(node.path)
        if content is None:
            missing += 1
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        if is_data_url(content):
            target.write_bytes(decode_data_url(content))
        else:
            target.write_text(content, encoding="utf-8")
        written += 1
    return written, missing


def _get_client(ctx: Any) -> GitHubClient:
    return GitHubClient(token=ctx.obj.get("token"), api_url=config.api_url)


def _open_client(ctx: Any) -> GitHubClient:
    """Create a client, or exit with the configuration error."""
    try:
        return _get_client(ctx)
    except BuildrError as e:
        ctx.obj["out"].error(str(e))
        ctx.exit(1)


def _get_service(ctx: Any, client: Optional[GitHubClient] = None) -> WorkspaceService:
    """Create the workspace service for the current user.

    Without a client only local operations succeed.
    """
    return WorkspaceService(
        client,
        WorkspaceStore(config.state_dir),
        ctx.obj["user"],
        output=ctx.obj["out"],
    )


def _check(ctx: Any, result: OperationResult) -> Any:
    """Return the data of a successful result, or exit with its error."""
    if not result.success:
        out: OutputFormatter = ctx.obj["out"]
        out.error(result.error or "Operation failed")
        ctx.exit(1)
    return result.data


def _load_workspace(
    ctx: Any, service: WorkspaceService, workspace_id: str
) -> Workspace:
    workspace = _check(ctx, service.get_workspace_state(workspace_id))
    if workspace is None:
        ctx.obj["out"].error(f"Workspace not found: {workspace_id}")
        ctx.exit(1)
    return workspace


def _settings_target(
    ctx: Any, repo: Optional[str], branch: Optional[str]
) -> SyncTarget:
    """Resolve the target from options, falling back to the settings."""
    settings = _check(ctx, _get_service(ctx).get_settings())
    settings.github_repo = repo or settings.github_repo
    settings.github_branch = branch or settings.github_branch
    return settings.require_target()


def _publish_result_dict(result: PublishResult) -> dict[str, Any]:
    return {
        "dry_run": result.dry_run,
        "deleted": result.deleted,
        "uploaded": result.uploaded,
        "failed": result.failed,
        "skipped": result.skipped,
        "created": result.created,
        "revision": result.revision,
        "stats": result.stats,
    }


@click.group()
@click.option("--token", "-t", envvar="GITHUB_TOKEN", help="GitHub access token")
@click.option("--user", "-u", help="Local user the workspaces belong to")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pybuildr")
@click.pass_context
def main(
    ctx: Any,
    token: Optional[str],
    user: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """pybuildr - Edit Jekyll sites in local workspaces and publish them to GitHub."""
    # Store settings in context for subcommands to access
    ctx.ensure_object(dict)
    ctx.obj["token"] = token or config.token
    ctx.obj["user"] = user or config.get_default_user()
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pybuildr").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option(
    "--token",
    "-t",
    prompt="Enter your GitHub access token",
    hide_input=True,
    help="GitHub access token",
)
@click.pass_context
def init(ctx: Any, token: str) -> None:
    """Initialize pybuildr configuration.

    Validates the token, stores it in ~/.config/pybuildr/config and links
    the GitHub account to the current user's settings.
    """
    out: OutputFormatter = ctx.obj["out"]

    out.info("Validating token...")
    username = None
    try:
        with GitHubClient(token=token, api_url=config.api_url) as client:
            username = client.get_authenticated_user().get("login")
        out.success(f"✓ Token is valid (GitHub user: {username})")
    except BuildrAPIError as e:
        out.error(f"Token validation failed: {e}")
        if not click.confirm("Save token anyway?", default=False):
            out.warning("Configuration cancelled.")
            ctx.exit(1)

    config.save_token(token)
    if username:
        service = _get_service(ctx)
        _check(ctx, service.save_settings(github_username=username))

    out.print_summary(
        "Initialization Complete",
        [
            ("Status", "✓ Configuration saved successfully"),
            ("Config file", str(config.get_config_path())),
            ("Note", "You can now use pybuildr commands without --token"),
        ],
    )


@main.command()
@click.argument("repo")
@click.option("--branch", "-b", default="main", show_default=True, help="Branch")
@click.pass_context
def clone(ctx: Any, repo: str, branch: str) -> None:
    """Clone REPO (owner/name) into a new workspace and make it active.

    Examples:
        pybuildr clone octocat/blog
        pybuildr clone octocat/blog -b gh-pages
    """
    out: OutputFormatter = ctx.obj["out"]
    with _open_client(ctx) as client:
        result = _get_service(ctx, client).create_workspace(repo, branch)
    workspace: Workspace = _check(ctx, result)

    if out.json_output:
        out.output_json(
            {
                "id": workspace.id,
                "name": workspace.name,
                "files": len(workspace.synced_file_state),
            }
        )
        return
    out.success(f"Cloned {repo}@{branch} into workspace {workspace.id}")
    out.info(f"  Files: {len(workspace.synced_file_state)}")


@main.command()
@click.pass_context
def workspaces(ctx: Any) -> None:
    """List your workspaces."""
    out: OutputFormatter = ctx.obj["out"]
    service = _get_service(ctx)
    items = _check(ctx, service.list_workspaces())
    settings = _check(ctx, service.get_settings())

    if out.json_output:
        out.output_json(
            [
                {**item, "active": item["id"] == settings.active_workspace_id}
                for item in items
            ]
        )
        return

    if not items:
        out.info("No workspaces found. Use 'pybuildr clone' to create one.")
        return

    out.output_table(
        ["", "ID", "Name", "Repository", "Branch"],
        [
            [
                "*" if item["id"] == settings.active_workspace_id else "",
                item["id"],
                item["name"],
                item["githubRepo"],
                item["githubBranch"],
            ]
            for item in items
        ],
        title="Workspaces",
    )


@main.command()
@click.argument("workspace_id")
@click.pass_context
def use(ctx: Any, workspace_id: str) -> None:
    """Make WORKSPACE_ID the active workspace."""
    out: OutputFormatter = ctx.obj["out"]
    settings = _check(
        ctx, _get_service(ctx).set_active_workspace(workspace_id)
    )
    out.success(
        f"Active workspace: {workspace_id} "
        f"({settings.github_repo}@{settings.github_branch})"
    )


@main.command()
@click.argument("workspace_id")
@click.option("--repo", "-r", help="Re-clone from another repository")
@click.option("--branch", "-b", help="Re-clone from another branch")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def reclone(
    ctx: Any,
    workspace_id: str,
    repo: Optional[str],
    branch: Optional[str],
    yes: bool,
) -> None:
    """Re-clone a workspace from GitHub, discarding local edits."""
    out: OutputFormatter = ctx.obj["out"]
    client = _open_client(ctx)

    with client:
        service = _get_service(ctx, client)
        workspace = _load_workspace(ctx, service, workspace_id)
        repo = repo or workspace.github_repo
        branch = branch or workspace.github_branch

        if not yes and not click.confirm(
            f"Discard local changes in {workspace_id} and re-clone {repo}@{branch}?",
            default=False,
        ):
            out.warning("Re-clone cancelled.")
            return

        result = service.force_clone(workspace_id, repo, branch)

    refreshed: Workspace = _check(ctx, result)
    out.success(
        f"Re-cloned {repo}@{branch} "
        f"({len(refreshed.synced_file_state)} file(s))"
    )


@main.command()
@click.argument("workspace_id")
@click.argument("directory", type=click.Path(file_okay=False, path_type=Path))
@click.pass_context
def checkout(ctx: Any, workspace_id: str, directory: Path) -> None:
    """Write the files of a workspace into DIRECTORY."""
    out: OutputFormatter = ctx.obj["out"]
    service = _get_service(ctx)
    workspace = _load_workspace(ctx, service, workspace_id)

    directory.mkdir(parents=True, exist_ok=True)
    written, missing = write_local_workspace(workspace, directory)

    out.success(f"Checked out {written} file(s) to {directory}")
    if missing:
        out.warning(f"{missing} file(s) have no content in the workspace")


@main.command()
@click.argument("workspace_id")
@click.argument(
    "directory", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.pass_context
def stage(ctx: Any, workspace_id: str, directory: Path) -> None:
    """Replace the files of a workspace with the contents of DIRECTORY.

    Nothing is sent to GitHub; use 'pybuildr publish' afterwards.
    """
    out: OutputFormatter = ctx.obj["out"]
    service = _get_service(ctx)
    _load_workspace(ctx, service, workspace_id)

    tree, contents = read_local_workspace(directory, out)
    _check(
        ctx,
        service.save_workspace_state(
            workspace_id,
            {
                "fileStructure": [node.to_dict() for node in tree],
                "fileContents": contents,
            },
        ),
    )
    out.success(f"Staged {len(contents)} file(s) from {directory}")


@main.command()
@click.argument("workspace_id")
@click.pass_context
def status(ctx: Any, workspace_id: str) -> None:
    """Show what publishing a workspace would change."""
    out: OutputFormatter = ctx.obj["out"]
    diff = _check(ctx, _get_service(ctx).diff_workspace(workspace_id))

    if out.json_output:
        out.output_json(
            {
                "delete": [path for path, _ in diff.to_delete],
                "upsert": [entry.path for entry in diff.to_upsert],
                "skipped": diff.skipped,
            }
        )
        return

    if diff.is_empty and not diff.skipped:
        out.info("Nothing to publish - workspace matches the last sync.")
        return
    for path, _ in diff.to_delete:
        out.print(f"  deleted:    {path}")
    for entry in diff.to_upsert:
        out.print(f"  changed:    {entry.path}")
    for path in diff.skipped:
        out.print(f"  no content: {path}")


@main.command()
@click.argument("workspace_id")
@click.option(
    "--dry-run", is_flag=True, help="Show what would be published without changes"
)
@click.pass_context
def publish(ctx: Any, workspace_id: str, dry_run: bool) -> None:
    """Publish a workspace to its GitHub repository and branch.

    Files removed from the workspace are deleted remotely, new and changed
    files are committed one by one. Paths matched by the workspace's
    .gitignore are never touched.
    """
    out: OutputFormatter = ctx.obj["out"]
    with _open_client(ctx) as client:
        result = _get_service(ctx, client).publish_workspace(
            workspace_id, dry_run=dry_run
        )
    if out.json_output and isinstance(result.data, PublishResult):
        out.output_json(_publish_result_dict(result.data))
    _check(ctx, result)


@main.command()
@click.argument("workspace_id")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete(ctx: Any, workspace_id: str, yes: bool) -> None:
    """Delete a local workspace (the GitHub repository is not touched)."""
    out: OutputFormatter = ctx.obj["out"]
    if not yes and not click.confirm(f"Delete workspace {workspace_id}?"):
        out.warning("Deletion cancelled.")
        return

    service = _get_service(ctx)
    deleted = _check(ctx, service.delete_workspace(workspace_id))
    if deleted:
        out.success(f"Deleted workspace {workspace_id}")
    else:
        out.warning(f"Workspace not found: {workspace_id}")


@main.command()
@click.pass_context
def disconnect(ctx: Any) -> None:
    """Forget the linked GitHub account, repository and branch."""
    out: OutputFormatter = ctx.obj["out"]
    _check(ctx, _get_service(ctx).disconnect_github())
    out.success("Disconnected from GitHub")


@main.command()
@click.option("--repo", "-r", help="Repository (defaults to the settings)")
@click.option("--branch", "-b", help="Branch (defaults to the settings)")
@click.pass_context
def scaffold(ctx: Any, repo: Optional[str], branch: Optional[str]) -> None:
    """Create the _posts, assets/images and _data directories on GitHub."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        target = _settings_target(ctx, repo, branch)
        with _get_client(ctx) as client:
            committed = ContentPublisher(client, target).scaffold_template()
    except BuildrError as e:
        out.error(str(e))
        ctx.exit(1)

    _check(ctx, _get_service(ctx).mark_template_published())
    out.success(f"Scaffolded {target}")
    for path in committed:
        out.info(f"  + {path}")


@main.command("template-status")
@click.pass_context
def template_status(ctx: Any) -> None:
    """Show whether the site skeleton was scaffolded."""
    out: OutputFormatter = ctx.obj["out"]
    status = _check(ctx, _get_service(ctx).get_template_status())

    if out.json_output:
        out.output_json(status.to_dict())
    elif status.is_published:
        out.success(f"Template published at {status.published_at}")
    else:
        out.info("Template not published yet. Run 'pybuildr scaffold'.")


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--title", required=True, help="Post title")
@click.option("--slug", help="URL slug (defaults to the file name)")
@click.option("--author", default="", help="Post author")
@click.option("--categories", default="", help="Space separated categories")
@click.option(
    "--image",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Main image to compress and upload",
)
@click.option("--repo", "-r", help="Repository (defaults to the settings)")
@click.option("--branch", "-b", help="Branch (defaults to the settings)")
@click.pass_context
def post(
    ctx: Any,
    file: Path,
    title: str,
    slug: Optional[str],
    author: str,
    categories: str,
    image: Optional[Path],
    repo: Optional[str],
    branch: Optional[str],
) -> None:
    """Publish the markdown FILE as a blog post.

    Examples:
        pybuildr post hello.md --title "Hello World"
        pybuildr post hello.md --title "Hello" --image cover.jpg
    """
    out: OutputFormatter = ctx.obj["out"]
    main_image = None
    if image is not None:
        media_type = mimetypes.guess_type(image.name)[0] or "image/png"
        main_image = to_data_url(image.read_bytes(), media_type)

    new_post = Post(
        title=title,
        slug=slug or file.stem,
        content=file.read_text(encoding="utf-8"),
        author=author,
        categories=categories,
        main_image=main_image,
    )

    try:
        target = _settings_target(ctx, repo, branch)
        with _get_client(ctx) as client:
            result = ContentPublisher(client, target).publish_post(new_post)
    except (BuildrError, ValueError) as e:
        out.error(str(e))
        ctx.exit(1)

    if out.json_output:
        out.output_json(
            {
                "slug": result.slug,
                "filename": result.filename,
                "mainImage": result.main_image,
            }
        )
        return
    out.success(f"Published _posts/{result.filename}")
    if result.main_image:
        out.info(f"  Image: {result.main_image}")


@main.command()
@click.argument("workspace_id")
@click.option("--title", required=True, help="Pull request title")
@click.option("--body", default="", help="Pull request description")
@click.pass_context
def pr(ctx: Any, workspace_id: str, title: str, body: str) -> None:
    """Commit a workspace to a new branch and open a pull request."""
    out: OutputFormatter = ctx.obj["out"]
    service = _get_service(ctx)
    workspace = _load_workspace(ctx, service, workspace_id)

    try:
        with _get_client(ctx) as client:
            url = ContentPublisher(client, workspace.target).create_pull_request(
                workspace.file_structure,
                title,
                body,
                file_contents=workspace.file_contents,
            )
    except BuildrError as e:
        out.error(str(e))
        ctx.exit(1)

    if out.json_output:
        out.output_json({"url": url})
        return
    out.success(f"Opened pull request: {url}")


if __name__ == "__main__":
    main()
