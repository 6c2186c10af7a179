"""
Exceções canônicas da camada de configuração do Atlas Provision.

As exceções aqui definidas representam violações estruturais da
configuração do engine (arquivo ausente, formato desconhecido, raiz
inválida, conflito de tipos no merge). Elas nunca representam falhas de
provisionamento: essas vivem em `core.exceptions`.

Invariantes:
    - Todas as exceções de configuração herdam de `ConfigError`
    - Nenhuma exceção deste módulo é levantada depois que o engine
      começou a chamar providers
"""


class ConfigError(Exception):
    """
    Exceção base para erros relacionados à configuração do Atlas Provision.

    Permite captura genérica de erros de configuração e distinção clara
    entre falhas estruturais e falhas de execução do engine.
    """


class DefaultsNotFoundError(ConfigError):
    """
    Exceção levantada quando o arquivo de configuração base (defaults)
    não é encontrado no caminho especificado.

    Decisões arquiteturais:
        - O arquivo de defaults é obrigatório
        - A ausência de defaults invalida o run
    """


class UnsupportedConfigFormatError(ConfigError):
    """
    Exceção levantada quando o formato do arquivo de configuração
    não é suportado pelo loader.

    Formatos suportados (v1):
        - YAML (.yaml, .yml)
        - JSON (.json)
    """


class InvalidConfigRootTypeError(ConfigError):
    """
    Exceção levantada quando o conteúdo raiz da configuração
    não é um dicionário (`dict`).
    """


class ConfigTypeConflictError(ConfigError):
    """
    Exceção levantada quando ocorre conflito de tipos durante o deep-merge.

    Exemplo de conflito:
        - base:     {"engine": {"parallelism": 4}}
        - override: {"engine": "serial"}

    Invariantes:
        - Nenhum merge parcial é produzido em caso de conflito
    """
