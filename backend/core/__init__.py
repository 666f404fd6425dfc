"""
core - 与业务无关的基础设施接口

- notification: 通知渠道（邮件等）
- storage: 对象存储
"""
