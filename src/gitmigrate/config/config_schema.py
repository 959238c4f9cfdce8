"""Pydantic schema of the GitMigrate configuration file."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from gitmigrate.git.integrate import DEFAULT_INTEGRATE_LABEL, Strategy
from gitmigrate.git.origin import SubmoduleStrategy
from gitmigrate.git.repo_type import GitRepoType


class OriginFilesSchema(BaseModel):
	"""Glob patterns selecting the origin files."""

	model_config = ConfigDict(extra="forbid")

	include: list[str] = Field(default_factory=lambda: ["**"], description="Patterns a file must match")
	exclude: list[str] = Field(default_factory=list, description="Patterns a file must not match")

	@field_validator("include")
	@classmethod
	def _include_not_empty(cls, value: list[str]) -> list[str]:
		if not value:
			msg = "origin_files.include needs at least one pattern"
			raise ValueError(msg)
		return value


class OriginSchema(BaseModel):
	"""The git origin section."""

	model_config = ConfigDict(extra="forbid")

	url: str | None = Field(None, description="Repository url")
	ref: str | None = Field(None, description="Default reference to track")
	repo_type: GitRepoType = GitRepoType.GIT
	submodules: SubmoduleStrategy = SubmoduleStrategy.NONE
	include_branch_commit_logs: bool = False
	origin_files: OriginFilesSchema = Field(default_factory=OriginFilesSchema)
	rebase_ref: str | None = Field(None, description="Reference the checkout is rebased onto")
	checkout_hook: str | None = Field(None, description="Executable run in the work tree after checkout")


class IntegrateSchema(BaseModel):
	"""The integrate section."""

	model_config = ConfigDict(extra="forbid")

	label: str = DEFAULT_INTEGRATE_LABEL
	strategy: Strategy = Strategy.FAKE_MERGE
	ignore_errors: bool = False


class GeneralSchema(BaseModel):
	"""Settings shared by every command."""

	model_config = ConfigDict(extra="forbid")

	verbose: bool = False
	cache_dir: str | None = Field(None, description="Repository cache directory")
	environment: dict[str, str] = Field(
		default_factory=dict, description="Variables added to the environment of the checkout hook"
	)


class AppConfigSchema(BaseModel):
	"""Root of the configuration file."""

	model_config = ConfigDict(extra="forbid")

	origin: OriginSchema = Field(default_factory=OriginSchema)
	integrate: IntegrateSchema = Field(default_factory=IntegrateSchema)
	general: GeneralSchema = Field(default_factory=GeneralSchema)
