"""
MarketWatch 行情缓存服务
位于第三方金融数据 API 之前的读穿透缓存 + 定时刷新层

架构分层：
  存储层     (Store)        → Redis / MongoDB / 内存 键值存储
  索引层     (Key Index)    → 需要定时刷新的标的列表
  数据获取层 (Acquisition)  → 多模块聚合拉取上游数据（限速）
  处理层     (Processing)   → 日线序列整理、取样
  分析层     (Analysis)     → 枢轴点（支撑位 / 阻力位）计算
"""

__version__ = "1.0.0"
