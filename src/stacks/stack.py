"""Stack definition shared by the orchestrators."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Stack:
    """One remote infrastructure stack for the duration of a CLI invocation.

    Attributes:
        name: Stack key from config (e.g. 'web')
        template: Rendered template body, deploy-time values already resolved
        bucket: Bucket to upload the template to instead of inlining it
        project: Optional project prefix for the remote stack name
        region: Region for the client session
        profile: Credentials profile for the client session
    """
    name: str
    template: str = ''
    bucket: Optional[str] = None
    project: Optional[str] = None
    region: Optional[str] = None
    profile: Optional[str] = None

    @property
    def stack_name(self) -> str:
        """Remote stack name: '<project>-<name>' when a project is set."""
        if self.project:
            return f"{self.project}-{self.name}"
        return self.name
