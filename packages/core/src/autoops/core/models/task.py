"""Goal / Task Domain Model

Goal 创建后不可变；Task 由 TaskPlanner 创建，仅在执行期间由 TaskExecutor 修改，
状态更新必须经过 transition_to() 的合法性校验。
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .enums import TaskPriority, TaskStatus, validate_task_transition


class Goal(BaseModel):
    """Goal 数据模型 -- 一次 Run 的不可变输入"""

    model_config = ConfigDict(frozen=True)

    goal_id: str = Field(description="唯一标识，ULID 格式")
    description: str = Field(description="目标文本")
    context: str | None = Field(default=None, description="附加上下文")
    constraints: list[str] = Field(default_factory=list, description="约束关键字，如 fast/thorough")
    created_at: datetime = Field(description="创建时间")


class TaskResult(BaseModel):
    """单次执行尝试的结果，创建后不可变"""

    model_config = ConfigDict(frozen=True)

    success: bool = Field(description="是否成功")
    output: str = Field(default="", description="输出文本")
    error: str | None = Field(default=None, description="错误信息")
    error_kind: str | None = Field(default=None, description="机器可读的错误类别")
    metrics: dict[str, float] = Field(default_factory=dict, description="执行指标")
    artifacts: list[str] = Field(default_factory=list, description="产出物引用")
    attempt: int = Field(default=1, description="第几次尝试")


class TaskSpec(BaseModel):
    """显式任务描述 -- 调用方自定义 DAG 时使用

    dependencies 使用同一批 TaskSpec 的 key 引用。
    """

    key: str = Field(description="调用方给定的任务键")
    title: str
    description: str = ""
    type: str = Field(default="generic", description="任务类型")
    priority: TaskPriority = TaskPriority.MEDIUM
    dependencies: list[str] = Field(default_factory=list)
    estimated_duration: int = Field(default=15, description="预估耗时（秒）")


class InvalidTaskTransition(ValueError):
    """非法的 Task 状态流转"""

    def __init__(self, task_id: str, from_status: TaskStatus, to_status: TaskStatus) -> None:
        self.task_id = task_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid task transition for {task_id}: {from_status} -> {to_status}"
        )


class Task(BaseModel):
    """Task 数据模型

    dependencies 只能引用同一计划内的 task_id，且必须构成 DAG（由 TaskPlanner 校验）。
    """

    task_id: str = Field(description="唯一标识，ULID 格式")
    title: str = Field(description="任务标题")
    description: str = Field(default="", description="任务描述")
    type: str = Field(default="generic", description="任务类型")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="优先级")
    dependencies: list[str] = Field(default_factory=list, description="依赖的 task_id")
    estimated_duration: int = Field(default=15, description="预估耗时（秒）")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="当前状态")
    result: TaskResult | None = Field(default=None, description="最终结果")
    attempts: list[TaskResult] = Field(default_factory=list, description="全部尝试结果")
    started_at: datetime | None = None
    completed_at: datetime | None = None
    actual_duration: float | None = Field(default=None, description="实际耗时（秒）")

    def transition_to(self, status: TaskStatus) -> None:
        """推进状态，非法流转抛出 InvalidTaskTransition"""
        if not validate_task_transition(self.status, status):
            raise InvalidTaskTransition(self.task_id, self.status, status)
        self.status = status


class TaskPlan(BaseModel):
    """已校验并排序的任务计划"""

    plan_id: str = Field(description="唯一标识，ULID 格式")
    goal_id: str = Field(description="关联的 Goal ID")
    tasks: list[Task] = Field(description="按执行顺序排列的任务")
    reasoning_summary: str = Field(default="", description="分解思路摘要")
    estimated_total_duration: int = Field(default=0, description="预估总耗时（秒）")
    template: str = Field(default="default", description="使用的分解模板")


class PlanValidation(BaseModel):
    """计划校验结果"""

    valid: bool
    issues: list[str] = Field(default_factory=list)
    cycle: list[str] | None = Field(default=None, description="检测到的环路（task_id 序列）")
