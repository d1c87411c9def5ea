"""
API模块包
包含所有REST API端点的定义

模块说明:
- config.py: 运行参数与输入校验接口
- simulation.py: 仿真控制接口
- results.py: 结果查询接口
"""

from prodsim.api import config, simulation, results

__all__ = ["config", "simulation", "results"]
