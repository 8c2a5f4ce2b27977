"""
Shipping summaries printed when the agent stops.
"""
from typing import Any, Dict, Optional

from cloudjournal.messages.logger import ShipperLogger, _get_event_loop_time


class Summary:
    """
    Generates an end-of-run summary for a shipping session.

    The summary answers the questions an operator asks after a restart:
    how much was shipped, how long the agent ran, and which cursor it
    stopped at.
    """

    def __init__(self, logger: Optional[ShipperLogger] = None):
        self.logger = logger or ShipperLogger("cloudjournal.summary")

    @staticmethod
    def format_elapsed(elapsed_time: float) -> str:
        """Render seconds as '1 hour, 2 minutes and 3.00 seconds'."""
        hours = int(elapsed_time // 3600)
        minutes = int((elapsed_time % 3600) // 60)
        seconds = elapsed_time % 60

        time_parts = []
        if hours > 0:
            time_parts.append(f"{hours} hour{'s' if hours != 1 else ''}")
        if minutes > 0:
            time_parts.append(f"{minutes} minute{'s' if minutes != 1 else ''}")
        time_parts.append(f"{seconds:.2f} second{'s' if seconds != 1.0 else ''}")

        if len(time_parts) > 1:
            return ", ".join(time_parts[:-1]) + f" and {time_parts[-1]}"
        return time_parts[0]

    def generate_summary(
        self,
        result: Dict[str, Any],
        start_time: Optional[float] = None,
    ) -> None:
        """
        Generate and log the shipping summary.

        Args:
            result: Shipping result dictionary with keys:
                - stream: Destination stream name
                - status: "pass" or "fail"
                - records: Number of records shipped
                - batches: Number of batches shipped
                - idle_polls: Number of empty reads
                - cursor: Last persisted cursor (or None)
                - error: Optional error message (for failures)
            start_time: Event loop time the agent started shipping
        """
        elapsed_time = (
            _get_event_loop_time() - start_time if start_time is not None else 0.0
        )

        self.logger.info("")
        self.logger.info(
            f"Finished shipping to {result['stream']} in "
            f"{self.format_elapsed(elapsed_time)} ({elapsed_time:.2f}s)."
        )

        if result["status"] == "pass":
            self.logger.info("Stopped cleanly", color_prefix="OK")
        else:
            self.logger.error(f"Stopped with errors: {result.get('error')}")

        batch_word = "batch" if result["batches"] == 1 else "batches"
        self.logger.info(
            f"{result['records']:,} records shipped in "
            f"{result['batches']:,} {batch_word} "
            f"({result['idle_polls']:,} idle polls)."
        )
        if result["records"] > 0 and elapsed_time > 0:
            rate = result["records"] / elapsed_time
            self.logger.info(f"Overall rate: {rate:,.0f} records/s")

        if result.get("cursor"):
            self.logger.info(f"Last persisted cursor: {result['cursor']}")
