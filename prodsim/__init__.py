"""
生产线离散事件仿真系统
Production Line Discrete-Event Simulation

子包:
- models: 输入/事件/结果数据模型
- core: 仿真引擎与运行时组件
- utils: 订单解析、校验、统计、时间换算
- api: REST API 路由
"""

__version__ = "1.0.0"
