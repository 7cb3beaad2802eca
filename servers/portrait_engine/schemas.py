"""
학생 포트레이트 구조화 출력 스키마
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

Grade = Literal["A", "B", "C", "D", "E"]


class Score(BaseModel):
    total_score: float = Field(ge=0, le=100, description="0-100之间的综合得分")
    grade: Grade = Field(description="根据总分映射的等级 A-E")
    interpretation: str = Field(description="简要说明评分依据、整体表现")


class KnowledgeStructureEntry(BaseModel):
    node_id: Optional[str] = None
    node_name: str = Field(description="知识节点或子主题名称")
    mastery_level: str = Field(description="该知识点的掌握度评价，可包含等级与简短说明。")
    strengths: List[str] = Field(default_factory=list, description="该知识点表现良好的方面")
    issues: List[str] = Field(default_factory=list, description="存在的问题、错误类型或理解薄弱点")
    recommended_actions: List[str] = Field(default_factory=list, description="针对该知识点的改进建议或练习方向")


class MasteryMetric(BaseModel):
    level: str = Field(description="综合掌握度评价结果，需明确等级并说明其含义")
    interpretation: str = Field(description="对掌握度评价的解释与背后原因")


class StabilityMetric(BaseModel):
    level: str = Field(description="稳定性水平，如稳定、波动较大等，需要有定性或定量描述")
    interpretation: str = Field(description="稳定性表现的解析与潜在原因")
    fluctuations: List[str] = Field(default_factory=list, description="识别到的波动或不稳定环节")


class TransferMetric(BaseModel):
    level: str = Field(description="迁移度水平，如较强/一般/较弱等，需要明确评价标准")
    interpretation: str = Field(description="对迁移能力的分析，包括在综合或跨知识点题目中的表现")
    gaps: List[str] = Field(default_factory=list, description="迁移过程中暴露出的不足或卡点")


class ProcessMetrics(BaseModel):
    mastery: MasteryMetric
    stability: StabilityMetric
    transfer: TransferMetric


class NextSteps(BaseModel):
    priorities: List[str] = Field(description="下一阶段最重要的关注重点，按优先级排序")
    recommended_practices: List[str] = Field(default_factory=list, description="具体的练习或学习任务建议")
    monitoring_indicators: List[str] = Field(default_factory=list, description="建议持续追踪的指标或检查点")


class ProcessAssessment(BaseModel):
    score: Score = Field(description="过程考查的整体评分结果，需结合学习过程表现给出0-100分与等级")
    knowledge_structure: List[KnowledgeStructureEntry] = Field(
        default_factory=list, description="针对知识体系中每个节点的掌握情况分析"
    )
    metrics: ProcessMetrics
    next_steps: NextSteps
    communication_notes: List[str] = Field(
        default_factory=list, description="与学生或家长沟通时的注意事项、鼓励点或风险提示"
    )


class DimensionRating(BaseModel):
    score: float = Field(ge=0, le=100)
    level: str
    comments: str


class ArtifactRatings(BaseModel):
    content_quality: DimensionRating
    thinking_innovation: DimensionRating
    expression_presentation: DimensionRating
    norms_reflection: DimensionRating


class ArtifactAssessment(BaseModel):
    file_url: str = Field(description="作品文件链接")
    ratings: ArtifactRatings
    total_score: float = Field(ge=0, le=100)
    grade: Grade
    strengths: List[str] = Field(default_factory=list)
    issues: List[str] = Field(default_factory=list)
    improvement_actions: List[str] = Field(default_factory=list)


class PerformanceAssessment(BaseModel):
    overall_score: Score = Field(description="最终表现的综合评分结果，需给出0-100分与等级")
    overall_summary: str = Field(description="对最终作品整体表现性评价的综合总结，需突出关键结论与等级判断")
    artifacts: List[ArtifactAssessment] = Field(default_factory=list)
    monitoring_recommendations: List[str] = Field(default_factory=list)


class PortraitOverview(BaseModel):
    overview: str = Field(description="综合过程考查与最终表现后对学生水平与改进重点的 2-3 句总结。")


class PortraitMarkdown(BaseModel):
    markdown: str = Field(description="最终呈现给学生的 Markdown 画像，应包含过程考查、最终表现、下一步建议等结构化部分。")


class StudentPortrait(BaseModel):
    overview: str = Field(description="对学生在该主题下整体学习状态的高度概括，点出过程与最终表现的核心结论。")
    process_assessment: ProcessAssessment
    performance_assessment: PerformanceAssessment


class ArtifactAnalysis(BaseModel):
    """작품 파싱 결과 (LLM 출력 아님)"""
    file_url: str
    summary: str
    mineru_payload_length: Optional[int] = None
    errors: Optional[List[str]] = None
