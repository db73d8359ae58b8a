from enum import Enum


class EventType(str, Enum):
    PUSH = "push"
    PULL_REQUEST = "pull_request"
    MANUAL = "manual"

    @classmethod
    def from_github(cls, event_name: str) -> "EventType":
        """Map a GitHub Actions event name onto an EventType"""
        if event_name == "workflow_dispatch":
            return cls.MANUAL
        return cls(event_name)


class Provenance(str, Enum):
    TRUSTED = "trusted"
    UNTRUSTED = "untrusted"


class CacheAccess(str, Enum):
    READ_ONLY = "read_only"
    READ_WRITE = "read_write"


class Flavor(str, Enum):
    DEBUG_FDROID = "debug_fdroid"

    @property
    def product_flavor(self) -> str:
        return self.value.split("_", 1)[1]

    @property
    def build_type(self) -> str:
        return self.value.split("_", 1)[0]

    @property
    def gradle_task(self) -> str:
        return f"assemble{self.product_flavor.capitalize()}{self.build_type.capitalize()}"

    def output_glob(self) -> str:
        """Glob of produced binaries, relative to the APK outputs directory"""
        return f"{self.product_flavor}/{self.build_type}/*.apk"


class PublishTargetKind(str, Enum):
    ARTIFACT_STORE = "artifact_store"
    RELEASE_STORE = "release_store"


class RunStatus(str, Enum):
    SKIPPED = "skipped"
    PUBLISHED = "published"
    FAILED = "failed"
    CANCELLED = "cancelled"
