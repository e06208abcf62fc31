try:
    from google.adk.agents import Agent
except Exception:
    # Compatibility with older ADK versions
    from google.adk.agents.llm_agent import Agent


def list_checkpoints() -> dict:
    """ADK tool: return the checkpoint names the screenshot tour captures."""
    import main

    return {"checkpoints": main.tour_checkpoints()}


def seed_demo_state() -> dict:
    """ADK tool: force-stop the app and seed the demo snapshot."""
    import main

    snapshot, report = main.seed_state()
    return {
        "status": "seeded",
        "sites": len(snapshot.sites),
        "webspaces": len(snapshot.webspaces),
        "verification": report.format(),
    }


def verify_state() -> dict:
    """ADK tool: report which snapshot keys are stored and how many items each list holds."""
    import main

    report = main.verify_state()
    return {
        "all_present": report.all_present,
        "site_count": report.site_count,
        "webspace_count": report.webspace_count,
        "verification": report.format(),
    }


def run_screenshot_tour() -> dict:
    """ADK tool: seed, launch and walk the full screenshot tour."""
    import main

    run_dir, result = main.run_screenshot_session()
    return {
        "status": result["run"]["state"],
        "run_directory": run_dir,
        "result": result,
    }


root_agent = Agent(
    name="webspace_screenshot_agent",
    description=(
        "Orchestrates store-listing screenshot runs for the webspace Android app: "
        "seeds its stored configuration, launches it, and walks a checkpointed UI tour."
    ),
    instruction=(
        "You run the webspace screenshot harness. Use list_checkpoints to see what a tour "
        "captures, seed_demo_state or verify_state to prepare and inspect stored data, and "
        "run_screenshot_tour to produce the screenshots. Report the run directory and final state."
    ),
    tools=[list_checkpoints, seed_demo_state, verify_state, run_screenshot_tour],
)
