from git_tag_action import main

main()
