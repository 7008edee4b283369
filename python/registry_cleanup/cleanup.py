"""
Cleanup workflow for GitLab container registries.

Walks the configured repository selections, resolves the matching projects
and registry repositories, runs each referenced policy through the tag
filter pipeline and deletes (or, in dry-run mode, reports) the candidates.

A failure in one policy execution is logged and recorded in the summary;
the remaining repositories and policies are still processed.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from tabulate import tabulate

from registry_cleanup.config_manager import ConfigManager
from registry_cleanup.filters import DEFAULT_STAGES, FilterPipeline, FilterStage
from registry_cleanup.gitlab_client import GitLabClient
from registry_cleanup.logging_utils import get_logger, log_exception
from registry_cleanup.models import PolicyConfig, RepositoryConfig, Tag, tag_names
from registry_cleanup.progress import Progress


@dataclass
class PolicyResult:
    """Outcome of one policy applied to one registry repository"""
    project_id: int
    repository: str
    policy: str
    candidates: List[str] = field(default_factory=list)
    deleted: int = 0
    dry_run: bool = False
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class CleanupSummary:
    """Aggregated results of a cleanup run"""
    results: List[PolicyResult] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors) or any(r.failed for r in self.results)

    @property
    def total_candidates(self) -> int:
        return sum(len(r.candidates) for r in self.results)

    @property
    def total_deleted(self) -> int:
        return sum(r.deleted for r in self.results)

    def to_table(self) -> str:
        headers = ["Project", "Repository", "Policy", "Candidates", "Deleted", "Status"]
        rows = []
        for r in self.results:
            if r.failed:
                status = f"FAILED: {r.error.splitlines()[0]}"
            elif r.dry_run:
                status = "dry run"
            else:
                status = "ok"
            rows.append([r.project_id, r.repository, r.policy, len(r.candidates), r.deleted, status])
        return tabulate(rows, headers=headers, tablefmt="grid")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_candidates": self.total_candidates,
            "total_deleted": self.total_deleted,
            "errors": self.errors,
            "results": [asdict(r) for r in self.results],
        }


def is_registry_enabled(project: Dict[str, Any]) -> bool:
    """True if the project has its container registry turned on.

    Newer GitLab versions report `container_registry_access_level`, older
    ones only the boolean `container_registry_enabled`.
    """
    access_level = project.get("container_registry_access_level")
    if access_level is not None:
        return access_level != "disabled"
    return bool(project.get("container_registry_enabled"))


class RegistryCleaner:
    """Applies the configured retention policies to GitLab registries"""

    def __init__(
        self,
        client: GitLabClient,
        config_manager: ConfigManager,
        dry_run: bool = False,
        show_progress: bool = False,
        policy_filter: Optional[Sequence[str]] = None,
        stages: Sequence[FilterStage] = DEFAULT_STAGES,
    ):
        self.client = client
        self.config_manager = config_manager
        self.dry_run = dry_run
        self.show_progress = show_progress
        self.policy_filter = [p for p in (policy_filter or []) if p]
        self.stages = stages
        self.logger = get_logger(self.__class__.__name__)
        self._ancestor_cache: Dict[int, List[int]] = {}

    def run(self) -> CleanupSummary:
        """Process every configured repository selection."""
        summary = CleanupSummary()

        self.logger.info("Retrieving all projects")
        projects = self.client.list_projects()

        for repository_config in self.config_manager.get_repositories():
            try:
                self.process_repository_config(projects, repository_config, summary)
            except Exception as e:
                message = (
                    f"Failed to process repository config (project={repository_config.project}, "
                    f"group={repository_config.group}): {e}"
                )
                log_exception(self.logger, message, e)
                summary.errors.append(message)

        return summary

    def process_repository_config(
        self, projects: List[Dict[str, Any]], repository_config: RepositoryConfig, summary: CleanupSummary
    ) -> None:
        self.logger.info(
            f"Processing repository config (project={repository_config.project}, group={repository_config.group})"
        )
        project_ids = self.get_repository_projects(projects, repository_config)
        self.logger.debug(f"Processing {len(project_ids)} repository projects")

        for project_id in project_ids:
            try:
                self.process_project(project_id, repository_config, summary)
            except Exception as e:
                message = f"Failed to process project {project_id}: {e}"
                log_exception(self.logger, message, e)
                summary.errors.append(message)

        self.logger.info(
            f"Finished processing repository config (project={repository_config.project}, group={repository_config.group})"
        )

    def process_project(self, project_id: int, repository_config: RepositoryConfig, summary: CleanupSummary) -> None:
        self.logger.debug(f"Retrieving all registry repositories for project {project_id}")
        repositories = self.client.list_registry_repositories(project_id)
        self.logger.debug(f"Found {len(repositories)} registry repositories")

        for repository in repositories:
            path = repository.get("path", "")
            if not repository_config.matches_image(path):
                self.logger.debug(f"Skipping unmatched repository {path}")
                continue
            self.logger.info(f"Processing repository {path}")
            summary.results.extend(self.process_repository_policies(project_id, repository, repository_config))
            self.logger.info(f"Finished processing repository {path}")

    def get_repository_projects(self, projects: List[Dict[str, Any]], repository_config: RepositoryConfig) -> List[int]:
        """Select the ids of projects matched by a repository config."""
        project_ids = []
        for project in projects:
            project_id = project["id"]
            if not is_registry_enabled(project):
                self.logger.debug(f"Container registry not enabled for project {project_id}")
                continue

            if repository_config.project and repository_config.project != project_id:
                continue

            if repository_config.group:
                namespace_id = (project.get("namespace") or {}).get("id")
                group_ids = [namespace_id]
                if repository_config.recurse and namespace_id:
                    group_ids.extend(self.get_ancestor_namespace_ids(namespace_id))
                if repository_config.group not in group_ids:
                    continue

            project_ids.append(project_id)
        return project_ids

    def get_ancestor_namespace_ids(self, namespace_id: int) -> List[int]:
        """Walk parent_id links up to the top-level group."""
        if namespace_id in self._ancestor_cache:
            return self._ancestor_cache[namespace_id]

        ids = []
        seen = {namespace_id}
        current = namespace_id
        while True:
            parent_id = self.client.get_namespace(current).get("parent_id")
            if not parent_id or parent_id in seen:
                break
            ids.append(parent_id)
            seen.add(parent_id)
            current = parent_id

        self._ancestor_cache[namespace_id] = ids
        return ids

    def process_repository_policies(
        self, project_id: int, repository: Dict[str, Any], repository_config: RepositoryConfig
    ) -> List[PolicyResult]:
        results = []
        for policy_name in repository_config.policies:
            if self.policy_filter and policy_name not in self.policy_filter:
                self.logger.warning(f"Skipping policy {policy_name} as not specified in policy flag")
                continue

            self.logger.info(f"Processing repository policy {policy_name}")
            result = PolicyResult(
                project_id=project_id, repository=repository.get("path", ""), policy=policy_name, dry_run=self.dry_run
            )
            try:
                policy = self.config_manager.get_policy_config(policy_name)
                self.process_policy(project_id, repository, policy, result)
            except Exception as e:
                log_exception(self.logger, f"Failed to process policy {policy_name} for {result.repository}", e)
                result.error = str(e)
            else:
                self.logger.info(f"Finished processing repository policy {policy_name}")
            results.append(result)
        return results

    def fetch_tags(self, project_id: int, repository: Dict[str, Any]) -> List[Tag]:
        """Retrieve every tag of a registry repository with its creation time."""
        self.logger.debug("Retrieving tag metadata")
        summaries = self.client.list_registry_tags(project_id, repository["id"])

        self.logger.info("Retrieving tag details")
        tags = []
        with Progress(self.show_progress, len(summaries), desc="Retrieving tags") as bar:
            for summary in summaries:
                bar.increment()
                self.logger.debug(f"Retrieving details for tag {summary['name']}")
                tags.append(self.client.get_registry_tag(project_id, repository["id"], summary["name"]))
        return tags

    def process_policy(
        self, project_id: int, repository: Dict[str, Any], policy: PolicyConfig, result: PolicyResult
    ) -> None:
        tags = self.fetch_tags(project_id, repository)

        self.logger.debug(
            f"Executing filter pipeline (include={policy.filter.include!r}, exclude={policy.filter.exclude!r}, "
            f"keep={policy.filter.keep}, age={policy.filter.age})"
        )
        candidates = FilterPipeline(tags, policy.filter).execute(self.stages)
        result.candidates = tag_names(candidates)

        self.logger.info(f"Found {len(candidates)} tags for removal")
        if not candidates:
            return

        self.logger.info("Removing tags")
        with Progress(self.show_progress, len(candidates), desc="Removing tags") as bar:
            for tag in candidates:
                bar.increment()
                if self.dry_run:
                    self.logger.warning(f"[DRY RUN]: Removing tag {tag.name}")
                    continue
                self.logger.info(f"Removing tag {tag.name}")
                self.client.delete_registry_tag(project_id, repository["id"], tag.name)
                result.deleted += 1

        if self.dry_run:
            self.logger.info(f"[DRY RUN]: Would have removed {len(candidates)} tags")
        else:
            self.logger.info(f"Finished removing {result.deleted} tags")
