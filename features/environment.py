def before_scenario(context, scenario):
    # Reset per scenario
    context.bridge = None
    context.channel = None
