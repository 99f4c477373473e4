"""
Workflow simulator usage example
"""
import asyncio
import logging
import random
from pathlib import Path

from workflow_simulator.executor import GraphExecutor, random_execute
from workflow_simulator.runner import SimulationRunner
from workflow_simulator.snapshot import load_workflow_file
from workflow_simulator.validation import validate_workflow


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


async def main():
    workflow = load_workflow_file(Path(__file__).parent / "welcome_campaign.json")

    report = validate_workflow(workflow)
    print(f"valid={report.valid} warnings={len(report.warnings)} cycles={report.cycles}")

    # Seeded for a repeatable run
    executor = GraphExecutor(execute_fn=random_execute(rng=random.Random(3)))
    runner = SimulationRunner(executor=executor)
    result = await runner.run(workflow, "start")

    for entry in runner.tracker.state.log:
        print(f"{entry.level.value:>7} {entry.step_id or '-':>16} {entry.message}")
    print(result.to_dict())


if __name__ == "__main__":
    asyncio.run(main())
