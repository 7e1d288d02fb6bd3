from __future__ import annotations

from typing import Dict, Tuple

TAINAN_CENTER: Tuple[float, float] = (23.08, 120.30)
CITY_FALLBACK_CENTROID: Tuple[float, float] = (22.9997, 120.2270)
COUNTY_NAMES = ("臺南市", "台南市")

# Scan order matters: a name that contains another district's name
# (安南區 contains 南區) must come first.
DISTRICT_COORDS: Dict[str, Tuple[float, float]] = {
    "安南區": (23.0470, 120.1850),
    "中西區": (22.9921, 120.1967),
    "東區": (22.9808, 120.2240),
    "南區": (22.9606, 120.1889),
    "北區": (23.0056, 120.2070),
    "安平區": (22.9990, 120.1660),
    "永康區": (23.0260, 120.2570),
    "歸仁區": (22.9670, 120.2940),
    "新化區": (23.0384, 120.3106),
    "左鎮區": (23.0580, 120.4070),
    "玉井區": (23.1237, 120.4600),
    "楠西區": (23.1733, 120.4853),
    "南化區": (23.0426, 120.4770),
    "仁德區": (22.9720, 120.2520),
    "關廟區": (22.9627, 120.3278),
    "龍崎區": (22.9650, 120.3610),
    "官田區": (23.1946, 120.3143),
    "麻豆區": (23.1817, 120.2480),
    "佳里區": (23.1650, 120.1770),
    "西港區": (23.1230, 120.2030),
    "七股區": (23.1400, 120.1400),
    "將軍區": (23.1990, 120.1560),
    "學甲區": (23.2320, 120.1800),
    "北門區": (23.2670, 120.1260),
    "新營區": (23.3100, 120.3170),
    "後壁區": (23.3660, 120.3610),
    "白河區": (23.3510, 120.4150),
    "東山區": (23.3260, 120.4030),
    "六甲區": (23.2320, 120.3470),
    "下營區": (23.2350, 120.2640),
    "柳營區": (23.2780, 120.3110),
    "鹽水區": (23.3200, 120.2660),
    "善化區": (23.1320, 120.2970),
    "大內區": (23.1190, 120.3490),
    "山上區": (23.1030, 120.3530),
    "新市區": (23.0790, 120.2950),
    "安定區": (23.1210, 120.2370),
}

RESOURCE_TEMPLATE_CSV = """name,address,capacity
國立成功大學醫學院附設醫院,台南市北區勝利路138號,850
臺南市立醫院,台南市東區崇德路670號,420
奇美醫院,台南市永康區中華路901號,960
新營醫院,台南市新營區信義街73號,180
"""

DEMAND_TEMPLATE_CSV = """district,village,count
東區,大學里,120
安南區,海佃里,340
永康區,大橋里,560
新營區,民權里,80
"""

RESOURCE_TEMPLATE_FILENAME = "資源上傳範本.csv"
DEMAND_TEMPLATE_FILENAME = "需求上傳範本.csv"
REPORT_FILENAME_PREFIX = "台南空間策略分析"

INSIGHT_FALLBACK_MESSAGE = "AI 空間平衡分析暫時無法載入。"
INGEST_FAILURE_MESSAGE = "資料解析失敗，請確認 CSV 格式是否正確。"

DENSITY_SCALE_MIN = 0.5
DENSITY_SCALE_MAX = 3.0
DENSITY_SCALE_DEFAULT = 1.0
