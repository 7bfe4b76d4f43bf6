"""Dependency extraction from compiler ASTs."""

import logging
from typing import Any, Dict, List, Optional

from .exceptions import ArtifactError
from .types import DEFERRED, ContractArtifact

LOG = logging.getLogger(__name__)


def exported_symbols(ast: Optional[Dict[str, Any]]) -> List[str]:
    """
    List the symbol names a source unit exports.

    Args:
        ast: Compiler AST of the source unit (may be None)

    Returns:
        Symbol names in AST order, empty if the AST has no symbol table
    """
    if not ast:
        return []
    return list((ast.get("exportedSymbols") or {}).keys())


class DependencyResolver:
    """
    Resolves the contracts a compiled contract depends on.

    Only one level is expanded: a dependency's own dependencies are never
    loaded. Dependencies are looked up by their own name, so resolving them
    never touches the address tracker.
    """

    def __init__(self, strategy):
        self.strategy = strategy

    def candidates(self, artifact: ContractArtifact) -> Dict[str, Optional[str]]:
        """Map every exported symbol other than the contract itself to a deferred placeholder."""
        return {
            name: DEFERRED
            for name in exported_symbols(artifact.ast)
            if name != artifact.name
        }

    def resolve(self, artifact: ContractArtifact) -> Dict[str, Optional[str]]:
        """
        Load each dependency's bundle.

        Returns:
            Dependency name -> serialized {contractName, abi, ast, source},
            or None for a dependency that could not be loaded
        """
        dependencies = self.candidates(artifact)

        for name in dependencies:
            try:
                dependency = self.strategy.load_dependency(name)
            except ArtifactError as e:
                LOG.warning(f"Could not load dependency {name} of {artifact.name}: {e}")
                continue

            dependencies[name] = dependency.serialized_bundle()

        return dependencies
