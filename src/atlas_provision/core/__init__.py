"""
Core do Atlas Provision.

Este pacote contém a implementação canônica do engine de provisionamento
orientado a grafo de dependências: declarações tipadas, resolução de
referências, ordenação, reconciliação com o estado conhecido e execução
contra providers abstratos.

Componentes principais:
    - model        → declarações, variáveis, outputs e schemas de tipos
    - graph        → resolução de referências e ordenação topológica
    - state        → registros de estado e state stores
    - providers    → protocolo `Provider` e registro por tipo de recurso
    - engine       → reconciliação, execução e fachada `Engine`
    - config       → resolução de configuração (merge, hashing, settings)
    - traceability → Manifest e Event Log do run

Princípios fundamentais:
    - Planejamento puro: nenhuma chamada a provider antes do plano completo
    - Estado é passado explicitamente, nunca acessado como singleton
    - Toda falha de execução é rastreável e serializável

Limites explícitos:
    - Não implementa providers de nuvem concretos
    - Não contém parser de sintaxe de configuração
"""
