"""领域层模型与协议。

包含：
- models: Message / Part / StreamEvent / ExchangeRequest 等统一数据结构。
- exceptions: 业务异常类型定义。
"""
