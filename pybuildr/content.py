"""Publishing blog posts, scaffolding a site and opening pull requests."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .api import GitHubClient
from .images import compress_image
from .models import FileNode, SyncTarget
from .sync.engine import DEFAULT_REQUIRED_DIRS
from .sync.tree import flatten_files
from .utils import KEEP_FILE_NAME, decode_data_url

logger = logging.getLogger(__name__)

POSTS_DIR = "_posts"
IMAGES_DIR = "assets/images"
SCAFFOLD_DIRS = ("_posts", "assets/images", "_data")
PR_BRANCH_PREFIX = "jekyll-buildr-update-"


@dataclass
class Post:
    """A blog post to publish."""

    title: str
    slug: str
    content: str
    author: str = ""
    categories: str = ""
    main_image: Optional[str] = None
    """Image path or URL, or a ``data:image/...`` URL to upload"""


@dataclass
class PostPublishResult:
    """What was committed for a post."""

    slug: str
    filename: str
    content: str
    main_image: Optional[str]


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def render_post(post: Post, main_image: Optional[str], now: datetime) -> str:
    """Render a post as a Jekyll markdown file with front matter."""
    front_matter = "\n".join(
        [
            "---",
            f"title: {_quote(post.title)}",
            f"author: {_quote(post.author or '')}",
            f"date: {now.isoformat()}",
            f"categories: {post.categories or ''}",
            f"image: {_quote(main_image or '')}",
            "---",
        ]
    )
    return f"{front_matter}\n\n{post.content}"


def pull_request_branch_name(now: datetime) -> str:
    """Build a unique branch name from a timestamp.

    Examples:
        >>> pull_request_branch_name(datetime(2024, 5, 1, 12, 30, 5, 123000))
        'jekyll-buildr-update-20240501T123005123Z'
    """
    return f"{PR_BRANCH_PREFIX}{now:%Y%m%dT%H%M%S}{now.microsecond // 1000:03d}Z"


class ContentPublisher:
    """Commits content straight to a repository branch."""

    def __init__(self, client: GitHubClient, target: SyncTarget):
        """Initialize content publisher.

        Args:
            client: GitHub API client
            target: Repository and branch to publish to
        """
        self.client = client
        self.target = target

    def publish_post(
        self, post: Post, now: Optional[datetime] = None
    ) -> PostPublishResult:
        """Commit a post and, if it carries one, its main image.

        A ``data:image`` main image is resized, converted to WebP and
        committed to ``assets/images/<slug>.webp``; the post then refers to
        it by its site path.

        Args:
            post: Post to publish
            now: Publication time (defaults to the current UTC time)

        Returns:
            PostPublishResult

        Raises:
            ImageTooLargeError: If the image is too large even after
                compression
            BuildrAPIError: If a commit fails
        """
        now = now or datetime.now(timezone.utc)
        repo, branch = self.target.repo, self.target.branch

        for path in DEFAULT_REQUIRED_DIRS:
            self.client.ensure_directory(repo, branch, path)

        main_image = post.main_image
        if main_image and main_image.startswith("data:image"):
            webp = compress_image(decode_data_url(main_image))
            image_path = f"{IMAGES_DIR}/{post.slug}.webp"
            self.client.put_file(
                repo,
                branch,
                image_path,
                webp,
                message=f"buildr: add image for {post.slug}",
            )
            main_image = f"/{image_path}"
            logger.info(f"Committed image {image_path}")

        filename = f"{now.date().isoformat()}-{post.slug}.md"
        content = render_post(post, main_image, now)
        self.client.put_file(
            repo,
            branch,
            f"{POSTS_DIR}/{filename}",
            content,
            message=f'buildr: publish post "{post.title}"',
        )
        logger.info(f"Published post {filename} to {self.target}")

        return PostPublishResult(
            slug=post.slug, filename=filename, content=content, main_image=main_image
        )

    def scaffold_template(self) -> list[str]:
        """Commit the directory skeleton of a Jekyll site.

        Returns:
            Paths of the committed keep-files
        """
        committed = []
        for directory in SCAFFOLD_DIRS:
            path = f"{directory}/{KEEP_FILE_NAME}"
            self.client.put_file(
                self.target.repo,
                self.target.branch,
                path,
                "",
                message=f"buildr: scaffold template - add {path}",
            )
            committed.append(path)
        return committed

    def create_pull_request(
        self,
        tree: list[FileNode],
        title: str,
        body: str,
        file_contents: Optional[dict[str, str]] = None,
        now: Optional[datetime] = None,
    ) -> str:
        """Commit a whole workspace tree to a new branch and open a PR.

        Files without resolvable content are skipped with a warning.

        Args:
            tree: Workspace tree
            title: Pull request title
            body: Pull request description
            file_contents: Contents by path (falls back to node content)
            now: Time used for the branch name

        Returns:
            URL of the pull request
        """
        contents = file_contents or {}
        repo, base = self.target.repo, self.target.branch
        head = pull_request_branch_name(now or datetime.now(timezone.utc))

        base_sha = self.client.get_branch_sha(repo, base)
        self.client.create_branch(repo, head, base_sha)
        logger.debug(f"Created branch {head} from {base} ({base_sha})")

        for node in flatten_files(tree):
            content = contents.get(node.path)
            if content is None:
                content = node.content
            if content is None:
                logger.warning(
                    f"Skipping commit for {node.path} due to undefined content."
                )
                continue
            self.client.put_file(
                repo, head, node.path, content, message=f"buildr: update {node.name}"
            )

        pr = self.client.create_pull_request(repo, title, body, head=head, base=base)
        url = str(pr.get("html_url", "")) if isinstance(pr, dict) else ""
        logger.info(f"Opened pull request {url}")
        return url
