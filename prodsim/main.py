"""
FastAPI 主入口
生产线离散事件仿真系统 - Production Line Discrete-Event Simulation
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from prodsim import __version__
from prodsim.api import config, simulation, results

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# 创建FastAPI应用实例
app = FastAPI(
    title="生产线离散事件仿真系统",
    description="Production Line Discrete-Event Simulation",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS中间件配置 - 允许跨域访问
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册API路由
app.include_router(config.router, prefix="/api/config", tags=["配置管理"])
app.include_router(simulation.router, prefix="/api/simulation", tags=["仿真控制"])
app.include_router(results.router, prefix="/api/results", tags=["结果查询"])


@app.get("/health")
async def health_check():
    """
    健康检查接口
    """
    return JSONResponse(content={
        "status": "healthy",
        "version": __version__,
        "service": "Production Line Discrete-Event Simulation",
        "worker_running": simulation.worker.running
    })


@app.on_event("startup")
async def startup_event():
    """
    应用启动事件
    """
    simulation.worker.start()
    print("生产线仿真系统启动成功!")
    print("API文档: http://localhost:8000/docs")


@app.on_event("shutdown")
async def shutdown_event():
    """
    应用关闭事件
    """
    simulation.worker.stop(timeout=5)
    print("生产线仿真系统已关闭")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("prodsim.main:app", host="0.0.0.0", port=8000, reload=True)
