"""Loader estrutural de declarações (YAML/JSON).

Constrói um `DeclarationSet` a partir de um documento já estruturado.
Não existe sintaxe textual de expressões: referências são mapeamentos
explícitos de uma única chave.

```yaml
variables:
  location: {type: string, default: westeurope}
resources:
  - type: azurerm_subnet
    name: trust
    attributes:
      address_prefix: 10.0.1.0/24
      virtual_network_id: {ref: azurerm_virtual_network.vnet.id}
      location: {var: location}
outputs:
  trust_subnet_id: {ref: azurerm_subnet.trust.id}
```

Notas:
- YAML é preferencial, JSON é alternativo.
- O formato é inferido pela extensão do arquivo.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from atlas_provision.core.exceptions import ValidationError

from .declarations import NO_VALUE, DeclarationSet, Output, ResourceDeclaration, Variable
from .values import Reference, VariableReference


class DeclarationFileNotFoundError(ValidationError):
    """Arquivo de declarações não existe no caminho informado."""


class UnsupportedDeclarationFormatError(ValidationError):
    """Formato não suportado (v1: YAML/JSON)."""


class DeclarationParseError(ValidationError):
    """Falha ao parsear YAML/JSON ou documento com estrutura inválida."""


def _expression(value: Any) -> Any:
    if isinstance(value, dict):
        if set(value) == {"ref"}:
            try:
                return Reference.parse(value["ref"])
            except ValueError as e:
                raise DeclarationParseError(message=str(e), details={"ref": value["ref"]}) from e
        if set(value) == {"var"}:
            return VariableReference(str(value["var"]))
        return {k: _expression(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expression(v) for v in value]
    return value


def declarations_from_dict(
    data: Mapping[str, Any],
    *,
    variable_overrides: Optional[Mapping[str, Any]] = None,
) -> DeclarationSet:
    """Materializa um `DeclarationSet` a partir de um documento estruturado."""
    if not isinstance(data, Mapping):
        raise DeclarationParseError(message="declarations root must be a mapping/dict", details={})

    overrides = dict(variable_overrides or {})
    declared = data.get("variables") or {}
    unknown = sorted(str(k) for k in overrides if k not in declared)
    if unknown:
        raise DeclarationParseError(
            message=f"Overrides for undeclared variables: {unknown}",
            details={"variables": unknown},
        )

    variables = []
    for name, spec in declared.items():
        spec = spec or {}
        if not isinstance(spec, dict):
            raise DeclarationParseError(
                message=f"variable '{name}' must be a mapping",
                details={"variable": name},
            )
        variables.append(
            Variable(
                name=str(name),
                type=str(spec.get("type", "any")),
                default=spec["default"] if "default" in spec else NO_VALUE,
                override=overrides[name] if name in overrides else NO_VALUE,
            )
        )

    resources = []
    for i, item in enumerate(data.get("resources") or []):
        if not isinstance(item, dict) or "type" not in item or "name" not in item:
            raise DeclarationParseError(
                message=f"resources[{i}] must be a mapping with 'type' and 'name'",
                details={"index": i},
            )
        attributes = item.get("attributes") or {}
        if not isinstance(attributes, dict):
            raise DeclarationParseError(
                message=f"resources[{i}].attributes must be a mapping",
                details={"index": i},
            )
        resources.append(
            ResourceDeclaration(
                resource_type=str(item["type"]),
                name=str(item["name"]),
                attributes={str(k): _expression(v) for k, v in attributes.items()},
            )
        )

    outputs = [
        Output(name=str(name), expression=_expression(expr))
        for name, expr in (data.get("outputs") or {}).items()
    ]

    return DeclarationSet(resources=resources, variables=variables, outputs=outputs)


def load_declarations(
    path: str,
    *,
    variable_overrides: Optional[Mapping[str, Any]] = None,
) -> DeclarationSet:
    """Carrega declarações a partir de YAML/JSON.

    Raises:
        DeclarationFileNotFoundError: se arquivo não existir.
        UnsupportedDeclarationFormatError: se extensão não suportada.
        DeclarationParseError: se parsing falhar.
    """
    p = Path(path)
    if not p.exists():
        raise DeclarationFileNotFoundError(message=f"declarations file not found: {p}", details={"path": str(p)})

    suffix = p.suffix.lower()
    raw = p.read_text(encoding="utf-8")

    try:
        if suffix in {".yml", ".yaml"}:
            data: Dict[str, Any] = yaml.safe_load(raw)
        elif suffix == ".json":
            data = json.loads(raw)
        else:
            raise UnsupportedDeclarationFormatError(
                message=f"unsupported declarations format: {suffix}",
                details={"path": str(p)},
            )
    except UnsupportedDeclarationFormatError:
        raise
    except Exception as e:
        raise DeclarationParseError(message=str(e) or "failed to parse declarations", details={"path": str(p)}) from e

    if data is None:
        raise DeclarationParseError(message="declarations file is empty", details={"path": str(p)})

    return declarations_from_dict(data, variable_overrides=variable_overrides)
