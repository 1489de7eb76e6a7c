"""
数据流分层架构
  Layer 1 – Store        : 键值存储（Redis / MongoDB / 内存）
  Layer 2 – Key Index    : 定时刷新标的索引
  Layer 3 – Acquisition  : 上游多模块聚合拉取
  Layer 4 – Processing   : 日线序列整理与取样
  Layer 5 – Analysis     : 枢轴点计算
"""
