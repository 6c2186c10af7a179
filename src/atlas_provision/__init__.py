"""
Atlas Provision — engine declarativo de provisionamento orientado a grafo.

Este pacote raiz define o namespace público do Atlas Provision, um engine
que consome declarações tipadas de infraestrutura (recursos, variáveis e
outputs com referências entre si) e converge o estado remoto por meio de
providers abstratos.

Princípios centrais:
    - O conjunto de recursos é um DAG explícito de referências
    - O planejamento é puro e determinístico
    - Falhas de execução são isoladas ao recurso e seus dependentes
    - O estado é persistido a cada operação concluída

Arquitetura em alto nível:
    - core.model        → declarações e schemas
    - core.graph        → resolução de referências e scheduler
    - core.engine       → reconciliação, execução e fachada Engine
    - core.state        → registros e state stores
    - core.traceability → Manifest e Event Log do run

Limites explícitos:
    - Não implementa providers de nuvem concretos
    - Não contém parser de sintaxe textual nem CLI
"""

__version__ = "0.1.0"
