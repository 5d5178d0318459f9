"""The hsctl command and the output and table formatting for admin listings."""