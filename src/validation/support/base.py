"""Common interface of the providers in a validation support chain."""

from typing import TYPE_CHECKING, Any, Dict, Optional

from pydantic import BaseModel

from src.validation.profiles import ResourceKind

if TYPE_CHECKING:
    from src.validation.support.chain import ValidationSupportChain


class CodeValidationResult(BaseModel):
    """Answer of a terminology provider for one code."""

    valid: bool
    system: str
    code: str
    display: Optional[str] = None
    message: Optional[str] = None


class ValidationSupport:
    """A provider consulted by the support chain.

    Every lookup returns None when the provider has no answer, so the chain
    can move on to the next provider. Providers that need other definitions
    resolve them through the chain they are called from, never directly.
    """

    name = "validation-support"

    def fetch_resource(self, kind: ResourceKind, url: str) -> Optional[Dict[str, Any]]:
        """Return the definition with this canonical URL, if known."""
        return None

    def is_code_system_supported(
        self, chain: "ValidationSupportChain", system: str
    ) -> bool:
        """Whether this provider can judge codes of ``system``."""
        return False

    def validate_code(
        self,
        chain: "ValidationSupportChain",
        system: str,
        code: str,
        display: Optional[str] = None,
        value_set_url: Optional[str] = None,
    ) -> Optional[CodeValidationResult]:
        """Check a code, optionally against a value set."""
        return None

    def generate_snapshot(
        self, chain: "ValidationSupportChain", profile: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Return a copy of ``profile`` carrying a snapshot."""
        return None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name}>"
